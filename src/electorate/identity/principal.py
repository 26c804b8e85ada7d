"""PrincipalId — opaque fixed-width participant identifier.

A principal is the already-authenticated identity a host hands to the
core. It behaves like an account address: 20 bytes wide, compared and
hashed by value, used as the key of every registry and vote map.
"""

from __future__ import annotations

from dataclasses import dataclass

PRINCIPAL_BYTES = 20
PRINCIPAL_HEX_DIGITS = PRINCIPAL_BYTES * 2
_MASK = (1 << (PRINCIPAL_BYTES * 8)) - 1


@dataclass(frozen=True, order=True)
class PrincipalId:
    """A fixed-width principal identifier.

    Values wider than PRINCIPAL_BYTES are truncated to the low-order
    bytes, the same way a wider integer converts to an address.
    """
    value: int

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise TypeError(f"PrincipalId value must be int, got {type(self.value).__name__}")
        if self.value < 0:
            raise ValueError(f"PrincipalId value must be non-negative, got {self.value}")
        if self.value > _MASK:
            object.__setattr__(self, "value", self.value & _MASK)

    @property
    def hex(self) -> str:
        """Canonical lowercase encoding, zero-padded to the full width."""
        return f"0x{self.value:0{PRINCIPAL_HEX_DIGITS}x}"

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    def __str__(self) -> str:
        return self.hex
