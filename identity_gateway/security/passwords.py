"""Salted, one-way password hashing backed by argon2id."""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError


class PasswordService:
    """Hash and verify user passwords.

    ``burn`` performs a verification against a throwaway hash so that login
    failures for unknown tenants or users cost the same as a wrong password.
    """

    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        self._hasher = hasher or PasswordHasher()
        self._dummy_hash = self._hasher.hash("dummy-password-for-timing")

    def hash(self, password: str) -> str:
        return self._hasher.hash(password)

    def verify(self, password_hash: str, password: str) -> bool:
        try:
            return self._hasher.verify(password_hash, password)
        except (InvalidHash, VerificationError):
            return False

    def burn(self, password: str) -> None:
        self.verify(self._dummy_hash, password)
