from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from typing import Optional

__all__ = [
    "ID_ALPHABET",
    "hash_password",
    "passwords_match",
    "create_random_string",
]

ID_ALPHABET = string.ascii_lowercase + string.digits


def hash_password(password: str, secret: str) -> Optional[str]:
    """Return the hex HMAC-SHA256 of the trimmed password keyed by `secret`.

    The server secret acts as a single global salt, so equal passwords hash
    equally on one server and differently across servers. Returns None for
    empty input.
    """
    if not isinstance(password, str):
        return None
    password = password.strip()
    if not password:
        return None
    return hmac.new(secret.encode("utf-8"), password.encode("utf-8"), hashlib.sha256).hexdigest()


def passwords_match(password: str, hashed: Optional[str], secret: str) -> bool:
    """Hash `password` and compare it to a stored digest in constant time."""
    candidate = hash_password(password, secret)
    if candidate is None or not isinstance(hashed, str):
        return False
    return hmac.compare_digest(candidate, hashed)


def create_random_string(length: int) -> str:
    """Return `length` characters drawn uniformly from ``[a-z0-9]``."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))
