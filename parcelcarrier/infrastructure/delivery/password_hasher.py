"""
Adapter: passlib password hasher.

Implements PasswordHasher port with a passlib CryptContext.
"""

import logging

from passlib.context import CryptContext

from parcelcarrier.domain.delivery.ports import PasswordHasher

logger = logging.getLogger(__name__)


class PasslibPasswordHasher(PasswordHasher):
    """Password hasher backed by a passlib CryptContext.

    Args:
        scheme: Any passlib scheme name (``pbkdf2_sha256``, ``bcrypt``,
            ``argon2``). Backends for bcrypt and argon2 are separate installs.
    """

    def __init__(self, scheme: str = "pbkdf2_sha256") -> None:
        self._context = CryptContext(schemes=[scheme], deprecated="auto")
        self.scheme = scheme

    def hash(self, raw_password: str) -> str:
        return self._context.hash(raw_password)

    def verify(self, raw_password: str, hashed: str) -> bool:
        try:
            return self._context.verify(raw_password, hashed)
        except ValueError:
            # Unrecognised or malformed hash
            logger.warning("Stored password hash could not be identified")
            return False
