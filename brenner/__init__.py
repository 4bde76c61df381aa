"""brenner - session engine for the Brenner Loop research protocol."""

__version__ = "0.1.0"
