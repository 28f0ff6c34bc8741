# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity lookup and privilege checks for staff users.

Authentication itself (passwords, sessions) is handled outside the tracker;
this module only resolves a user id to a role and enforces that privileged
operations are performed by an administrator.

Example:
    >>> users = UserService(db)
    >>> admin = await users.require_admin(reviewer_id)
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.infrastructure.database.models.student import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
    """Service for staff identities.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the user service.

        Args:
            db: Async database session.
        """
        self._db = db

    async def create_user(
        self,
        username: str,
        full_name: str,
        role: UserRole = UserRole.ASSISTANT,
    ) -> User:
        """Create a staff user.

        Args:
            username: Unique login name.
            full_name: Display name.
            role: Staff role.

        Returns:
            The created user.

        Raises:
            ValidationError: If the username is empty or already taken.
        """
        username = username.strip()
        if not username:
            raise ValidationError("Username must not be empty")
        if await self.get_by_username(username) is not None:
            raise ValidationError(
                f"Username '{username}' is already taken",
                {"username": username},
            )

        user = User(username=username, full_name=full_name, role=role, is_active=True)
        self._db.add(user)
        await self._db.flush()

        logger.info("Created user %s (%s) with role %s", user.username, user.id, role.value)
        return user

    async def get_user(self, user_id: int) -> User:
        """Get a user by id.

        Raises:
            NotFoundError: If the user does not exist.
        """
        user = await self._db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def get_by_username(self, username: str) -> User | None:
        result = await self._db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def is_admin(self, user_id: int) -> bool:
        user = await self._db.get(User, user_id)
        return user is not None and user.is_active and user.is_admin

    async def require_admin(self, user_id: int) -> User:
        """Ensure the user exists, is active and holds the admin role.

        Unknown users are treated as unprivileged so that callers see a
        single failure mode for every rejected actor.

        Args:
            user_id: Acting user id.

        Returns:
            The admin user.

        Raises:
            AuthorizationError: If the user is unknown, inactive or not admin.
        """
        user = await self._db.get(User, user_id)
        if user is None or not user.is_active or not user.is_admin:
            logger.warning("User %s denied admin operation", user_id)
            raise AuthorizationError(
                "Administrator privilege required",
                {"user_id": user_id},
            )
        return user


async def require_admin(db: AsyncSession, user_id: int) -> User:
    """Ensure user_id is an active administrator.

    Args:
        db: Async database session.
        user_id: Acting user id.

    Returns:
        The admin user.

    Raises:
        AuthorizationError: If the user is not an active administrator.
    """
    return await UserService(db).require_admin(user_id)
