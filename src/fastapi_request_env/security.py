"""Password hashing, access codes and constant-time secret comparison."""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import secrets

PBKDF2_ITERATIONS = 100_000
SALT_BYTES = 16
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def hash_password(password: str, salt: str | None = None) -> str:
    """Return ``pbkdf2:<salt>:<hash>`` with base64-encoded parts.

    Passing the base64 ``salt`` of a stored hash reproduces that hash.
    """
    raw_salt = base64.b64decode(salt) if salt else secrets.token_bytes(SALT_BYTES)
    derived = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), raw_salt, PBKDF2_ITERATIONS, dklen=32
    )
    return f"pbkdf2:{_b64(raw_salt)}:{_b64(derived)}"


def verify_password(password: str, stored: str) -> bool:
    if stored.startswith("pbkdf2:"):
        parts = stored.split(":")
        if len(parts) != 3:
            return False
        try:
            candidate = hash_password(password, parts[1])
        except ValueError:  # binascii.Error from a malformed salt
            return False
        return hmac.compare_digest(candidate, stored)
    # legacy: unsalted SHA-256
    legacy = _b64(hashlib.sha256(password.encode("utf-8")).digest())
    return hmac.compare_digest(legacy, stored)


def _random_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_access_code() -> str:
    code = _random_code(8)
    return f"{code[:4]}-{code[4:]}"


def generate_recovery_code() -> str:
    """One-time account recovery code, same shape as an access code."""
    return generate_access_code()


def generate_referral_suffix(length: int = 4) -> str:
    if length < 1:
        raise ValueError("length must be positive")
    return _random_code(length)


def normalize_access_code(text: str) -> str:
    """Uppercase and re-hyphenate user input; leave anything else untouched."""
    stripped = re.sub(r"[^A-Z0-9]", "", text.upper())
    if len(stripped) == 8:
        return f"{stripped[:4]}-{stripped[4:]}"
    return text


def secrets_match(provided: str | None, expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
