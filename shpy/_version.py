"""Version information for shpy."""

__version__ = "1.0.0"
