from __future__ import annotations

import base64
import hmac
import os
from dataclasses import dataclass
from typing import Protocol

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

_SCHEME = "scrypt"


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str:
        ...

    def verify(self, password: str, encoded: str) -> bool:
        ...


@dataclass(slots=True)
class ScryptPasswordHasher:
    """Salted scrypt hashes encoded as ``scrypt$n$r$p$salt$digest``."""

    n: int = 2**14
    r: int = 8
    p: int = 1
    salt_bytes: int = 16
    length: int = 32

    def _kdf(self, salt: bytes, n: int, r: int, p: int) -> Scrypt:
        return Scrypt(salt=salt, length=self.length, n=n, r=r, p=p)

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("password must be non-empty")
        salt = os.urandom(self.salt_bytes)
        digest = self._kdf(salt, self.n, self.r, self.p).derive(password.encode("utf-8"))
        return "$".join(
            [
                _SCHEME,
                str(self.n),
                str(self.r),
                str(self.p),
                base64.b64encode(salt).decode("ascii"),
                base64.b64encode(digest).decode("ascii"),
            ]
        )

    def verify(self, password: str, encoded: str) -> bool:
        try:
            scheme, n, r, p, salt_b64, digest_b64 = encoded.split("$")
        except ValueError:
            return False
        if not hmac.compare_digest(scheme, _SCHEME):
            return False
        salt = base64.b64decode(salt_b64)
        digest = base64.b64decode(digest_b64)
        try:
            self._kdf(salt, int(n), int(r), int(p)).verify(password.encode("utf-8"), digest)
        except InvalidKey:
            return False
        return True
