"""Identifier parser — free-text proposal strings to PrincipalId.

Super-elector election sessions name their candidates in the proposal
text itself ("0x" followed by hex digits). The parser is deliberately
lenient about content and strict about length:

- The first ``prefix_length`` characters are skipped without inspection.
- Digits are read from the last character back towards the prefix,
  least significant first.
- ``0-9``, ``a-f`` and ``A-F`` carry their hex value. Any other character
  contributes 0 but still occupies a digit position.
- Input shorter than the prefix is rejected with MALFORMED_IDENTIFIER
  rather than underflowing the backward scan.
"""

from __future__ import annotations

from electorate.errors import VotingError, VotingErrorKind
from electorate.identity.principal import PRINCIPAL_HEX_DIGITS, PrincipalId

DEFAULT_PREFIX = "0x"
DEFAULT_PREFIX_LENGTH = len(DEFAULT_PREFIX)


def _digit_value(char: str) -> int:
    if "0" <= char <= "9":
        return ord(char) - ord("0")
    if "A" <= char <= "F":
        return ord(char) - ord("A") + 10
    if "a" <= char <= "f":
        return ord(char) - ord("a") + 10
    return 0


def parse(text: str, prefix_length: int = DEFAULT_PREFIX_LENGTH) -> PrincipalId:
    """Parse a prefixed hex string into a PrincipalId.

    Args:
        text: Identifier text, conventionally ``0x`` + hex digits.
        prefix_length: Number of leading characters to skip.

    Returns:
        The parsed principal (zero principal if no digits follow the prefix).

    Raises:
        VotingError(MALFORMED_IDENTIFIER): If text is shorter than the prefix.
    """
    if len(text) < prefix_length:
        raise VotingError(
            VotingErrorKind.MALFORMED_IDENTIFIER,
            f"Identifier {text!r} is shorter than its {prefix_length}-character prefix",
        )

    value = 0
    position = 0
    for index in range(len(text) - 1, prefix_length - 1, -1):
        value += _digit_value(text[index]) * (16 ** position)
        position += 1
    return PrincipalId(value)


def format_principal(principal: PrincipalId, prefix: str = DEFAULT_PREFIX) -> str:
    """Encode a principal as prefix + zero-padded lowercase hex."""
    return f"{prefix}{principal.value:0{PRINCIPAL_HEX_DIGITS}x}"
