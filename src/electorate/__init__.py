"""Electorate — two-tier voting sessions with derived super-elector elections."""

__version__ = "0.1.0"
