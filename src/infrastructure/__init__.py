# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer.

This package contains:
- Database connections, sessions and ORM models (SQLAlchemy async)
- The in-process event bus used to cascade derived-state recalculation
"""
