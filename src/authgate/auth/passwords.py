# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets
from typing import Optional, Tuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_PH = PasswordHasher()

SALT_BYTES = 16


def hash_password(plain: str, salt: Optional[bytes] = None) -> Tuple[str, str]:
    """Return ``(encoded_hash, salt_hex)`` for ``plain``."""
    if not plain:
        raise ValueError("Empty password")
    salt = salt or secrets.token_bytes(SALT_BYTES)
    return _PH.hash(plain, salt=salt), salt.hex()


def verify_password(hash_value: str, plain: str) -> bool:
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except (VerificationError, InvalidHashError):
        return False


# Verified against when the username is unknown, so both failure paths cost the same.
DUMMY_HASH, _ = hash_password("authgate-dummy-password")
