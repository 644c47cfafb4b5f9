"""
Key material and password hashes compatible with the GrowthBook back-end.
"""

import base64
import hashlib
import secrets

from ..constants import (
    PASSWORD_HASH_BYTES,
    PASSWORD_SALT_BYTES,
    SCRYPT_N,
    SCRYPT_P,
    SCRYPT_R,
    SDK_KEY_BYTES,
)


def generate_key(byte_length: int = SDK_KEY_BYTES) -> str:
    """
    Generate a random key usable in URLs.

    The random bytes are base64 encoded with padding, ``/`` and ``+``
    removed, so the result is slightly shorter than the encoded length.
    """
    encoded = base64.b64encode(secrets.token_bytes(byte_length)).decode("ascii")
    return encoded.replace("=", "").replace("/", "").replace("+", "")


def hash_password(existing_hash: str, password: str) -> str:
    """
    Hash a password the way GrowthBook stores it.

    The result has the form ``<salt>:<key>`` where the salt is a hex string
    (used as is, not decoded, as scrypt input) and the key is the hex encoded
    64 byte scrypt output. The salt of ``existing_hash`` is reused when it has
    one, so hashing an unchanged password yields the identical string.

    Args:
        existing_hash: Currently stored hash, may be empty
        password: Clear text password

    Returns:
        The password hash
    """
    salt = existing_hash.split(":", 1)[0]
    if not salt:
        salt = secrets.token_hex(PASSWORD_SALT_BYTES)

    key = hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=PASSWORD_HASH_BYTES,
    )
    return f"{salt}:{key.hex()}"
