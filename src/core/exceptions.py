# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for the student tracker.

This module defines the exception hierarchy shared by every service:
- TrackerError: Base exception for all tracker errors
- ValidationError: Malformed input or violated business precondition
- ConflictError: A competing record already exists (pending request, snapshot)
- AuthorizationError: Non-privileged actor attempted a privileged operation
- NotFoundError: Referenced entity does not exist
- PersistenceError: Store-level failure
"""


class TrackerError(Exception):
    """Base exception for all tracker errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        """Initialize tracker error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ValidationError(TrackerError):
    """Raised when input is malformed or a business precondition fails.

    Always reported before anything is written.
    """

    pass


class ConflictError(ValidationError):
    """Raised when a competing record blocks the operation.

    Examples are a second pending update request for the same entity or a
    second ranking snapshot for the same date.
    """

    pass


class AuthorizationError(TrackerError):
    """Raised when the acting user lacks the required privilege."""

    pass


class NotFoundError(TrackerError):
    """Raised when a referenced entity does not exist.

    Attributes:
        entity_type: Kind of entity that was looked up.
        entity_id: Identifier that was looked up.
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: object,
        details: dict | None = None,
    ):
        """Initialize not-found error.

        Args:
            entity_type: Kind of entity that was looked up.
            entity_id: Identifier that was looked up.
            details: Optional dictionary with additional error context.
        """
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found", details)


class PersistenceError(TrackerError):
    """Raised when the data store fails."""

    pass
