"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection hashes a password longer than 72 bytes, which bcrypt 4.x rejects.

The work factor (rounds) is fixed per hasher instance and embedded in every
digest together with the random salt, so verify() needs only the digest.
Tests construct BcryptHasher(rounds=4) to keep the suite fast.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12


class BcryptHasher:
    """One-way hash and verify of plaintext passwords."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt digest. Two calls on the same input differ.

        bcrypt only looks at the first 72 bytes; the API layer rejects longer
        passwords before they get here.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed. Malformed digests give False."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except Exception:
            return False
