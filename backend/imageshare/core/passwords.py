import logging
import secrets

from passlib.crypto.scrypt import scrypt
from passlib.utils import consteq

logger = logging.getLogger(__name__)

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
KEY_LENGTH = 64
SALT_BYTES = 16


def _derive_key(password: str, salt_hex: str) -> bytes:
    # The salt is fed to the KDF as its hex text, the same way stored hashes were produced.
    return scrypt(
        password.encode("utf-8"),
        salt_hex.encode("ascii"),
        SCRYPT_N,
        SCRYPT_R,
        SCRYPT_P,
        KEY_LENGTH,
    )


def hash_password(password: str) -> str:
    salt_hex = secrets.token_hex(SALT_BYTES)
    return f"{_derive_key(password, salt_hex).hex()}.{salt_hex}"


def verify_password(password: str, stored: str) -> bool:
    """Check ``password`` against a ``<hex key>.<hex salt>`` string.

    Any malformed stored value (missing separator, empty parts, bad hex) is a
    mismatch, never an exception.
    """
    if not isinstance(password, str) or not isinstance(stored, str):
        return False
    parts = stored.split(".")
    if len(parts) != 2:
        return False
    key_hex, salt_hex = parts
    if not key_hex or not salt_hex:
        return False
    try:
        stored_key = bytes.fromhex(key_hex)
        bytes.fromhex(salt_hex)
        derived = _derive_key(password, salt_hex)
    except (ValueError, TypeError):
        return False
    except Exception:
        logger.exception("Password verification failed unexpectedly")
        return False
    return consteq(derived, stored_key)
