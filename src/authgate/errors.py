# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations


class AuthGateError(Exception):
    """Base class for authgate errors."""


class StoreConnectionError(AuthGateError):
    """The store could not be reached within the connect timeout."""


class StoreError(AuthGateError):
    """A store operation failed on an open connection."""


class UserExistsError(AuthGateError):
    def __init__(self, username: str):
        super().__init__(f"User already exists: {username}")
        self.username = username
