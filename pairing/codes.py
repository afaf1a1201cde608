"""Room code generation."""

import secrets
from typing import Optional

from pairing.config import settings


def normalize_code(raw: str) -> str:
    """Canonical form of a user-typed code: trimmed and upper-cased."""
    return raw.strip().upper()


class CodeGenerator:
    """Short human-typeable room codes.

    The alphabet leaves out look-alike characters (0/O, 1/I). Collision
    handling is the room store's job.
    """

    def __init__(self, length: Optional[int] = None, alphabet: Optional[str] = None):
        self.length = length or settings.room_code_length
        self.alphabet = alphabet or settings.room_code_alphabet

    def generate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    def is_well_formed(self, code: str) -> bool:
        """Check a normalized code against length and alphabet."""
        return len(code) == self.length and all(ch in self.alphabet for ch in code)
