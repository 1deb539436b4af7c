from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass

from outreach.db.models import User

PBKDF2_ITERATIONS = 390_000
_SCHEME = "pbkdf2_sha256"


@dataclass(frozen=True, slots=True)
class Identity:
    """The authenticated caller, passed explicitly into every pipeline call."""

    user_id: int
    username: str
    email: str
    name: str

    @classmethod
    def from_user(cls, user: User) -> Identity:
        return cls(user_id=user.id, username=user.username, email=user.email, name=user.name)


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"{_SCHEME}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        scheme, iterations, salt, expected = encoded.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if scheme != _SCHEME:
        return False

    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds)
    return hmac.compare_digest(digest.hex(), expected)
