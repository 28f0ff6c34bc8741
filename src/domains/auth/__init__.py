# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authorization domain.

Resolves staff identities and enforces the administrator privilege.

Exports:
    UserService: Staff user lookup and creation.
    require_admin: Privilege check usable without a service instance.
"""

from src.domains.auth.service import UserService, require_admin

__all__ = [
    "UserService",
    "require_admin",
]
