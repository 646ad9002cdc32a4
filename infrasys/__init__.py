"""Infrastructure setup for custom TUF repositories."""

__version__ = "0.1.0"
