"""TeamCity service messages for pytest runs."""

__version__ = "0.1.0"
