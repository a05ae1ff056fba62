"""playtime: timed practice sessions built from score highlights."""

__version__ = "0.1.0"
