"""
StudioGen Backend - Password Hashing
======================================

bcrypt hashing with a configurable work factor. Hashing is CPU-bound
(~250ms at 12 rounds), so both operations run in a worker thread to keep the
event loop responsive.
"""

import asyncio

import bcrypt

from studiogen.config import settings


# bcrypt only uses the first 72 bytes; newer releases raise instead of truncating
MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


class PasswordService:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def _hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def _verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False

    async def hash_password(self, password: str) -> str:
        return await asyncio.to_thread(self._hash, password)

    async def verify_password(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self._verify, password, password_hash)


password_service = PasswordService(rounds=settings.bcrypt_rounds)
