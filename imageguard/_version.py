"""Version information for imageguard."""

__version__ = "0.1.0"
