"""Version information for State Inspector."""

__version__ = "1.0.0"
