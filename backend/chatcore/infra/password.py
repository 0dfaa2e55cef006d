"""Centralized password hashing configuration.

All credential hashing goes through this module so identity registration,
login and legacy snapshot migration share the same Argon2id parameters.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

# Argon2id parameters
# - Memory: 64 MB (65536 KB)
# - Iterations (time_cost): 3
# - Parallelism: 4
PASSWORD_HASHER = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when the email is unknown so both failure paths cost the same.
_DUMMY_HASH = PASSWORD_HASHER.hash("chatcore-dummy-credential")


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return PASSWORD_HASHER.hash(password)


def verify_password(hash: str, password: str) -> bool:
    """Return True if the password matches the stored hash."""
    try:
        return PASSWORD_HASHER.verify(hash, password)
    except (VerificationError, InvalidHashError):
        return False


def burn_verification(password: str) -> None:
    """Spend one verification against a fixed hash; the result is ignored."""
    verify_password(_DUMMY_HASH, password)


def check_needs_rehash(hash: str) -> bool:
    """Return True when the hash was produced with weaker parameters."""
    return PASSWORD_HASHER.check_needs_rehash(hash)


def looks_hashed(value: str) -> bool:
    return value.startswith("$argon2")
