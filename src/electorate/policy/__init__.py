"""Electorate configuration."""

from electorate.policy.resolver import PolicyError, PolicyResolver, load_environment

__all__ = ["PolicyError", "PolicyResolver", "load_environment"]
