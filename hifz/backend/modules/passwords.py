# hifz/backend/modules/passwords.py

import bcrypt

from ..config.config import settings

# bcrypt only looks at the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72


def _to_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = None) -> str:
    """Returns a salted bcrypt hash of the password. Deliberately slow; call it off the event loop."""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_to_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Checks a password against a stored bcrypt hash. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_to_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False
