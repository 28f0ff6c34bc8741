# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for the student tracker.

This package contains cross-domain building blocks:
- config: Application configuration and settings
- exceptions: Error taxonomy shared by every service
- composition: Service construction and the event subscription table
"""
