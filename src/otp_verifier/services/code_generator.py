"""Passcode generation."""

import secrets
import string


class CodeGenerator:
    """Draws fixed-length numeric passcodes from the OS CSPRNG.

    Every digit is picked independently and uniformly from ``0-9``, so
    leading zeros are as likely as any other digit.
    """

    def __init__(self, length: int = 6) -> None:
        if length <= 0:
            raise ValueError(f"Code length must be positive, got {length}")
        self.length = length

    def generate(self, length: int | None = None) -> str:
        """Return a fresh code of *length* digits (defaults to ``self.length``)."""
        length = self.length if length is None else length
        if length <= 0:
            raise ValueError(f"Code length must be positive, got {length}")
        return "".join(secrets.choice(string.digits) for _ in range(length))
