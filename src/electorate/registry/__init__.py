"""Elector registry — normal and super electors."""

from electorate.registry.electors import ElectorRegistry

__all__ = ["ElectorRegistry"]
