"""Principal identifiers and their textual encoding."""

from electorate.identity.principal import PrincipalId
from electorate.identity.parser import format_principal, parse

__all__ = ["PrincipalId", "format_principal", "parse"]
