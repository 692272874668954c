"""Credential store: users, password digests and group memberships. No token logic lives here."""

import logging

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import Settings
from gatekeeper.core.errors import ConflictError, NotFoundError, store_errors
from gatekeeper.models.group import Group
from gatekeeper.models.user import User, user_groups

logger = logging.getLogger(__name__)


class CredentialStore:
    def __init__(self, session: AsyncSession, conf: Settings):
        self._session = session
        self.default_group = conf.default_group

    async def get_user_by_id(self, user_id: int) -> User:
        with store_errors("get user by id"):
            r = await self._session.execute(select(User).where(User.id == user_id))
            user = r.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        return user

    async def get_user_by_username(self, username: str) -> User:
        with store_errors("get user by username"):
            r = await self._session.execute(select(User).where(User.username == username))
            user = r.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"user {username!r} not found")
        return user

    async def _get_or_create_group(self, name: str) -> Group:
        r = await self._session.execute(select(Group).where(Group.name == name))
        group = r.scalar_one_or_none()
        if group is None:
            group = Group(name=name)
            self._session.add(group)
            await self._session.flush()
        return group

    async def create_user(self, username: str, password_hash: str) -> tuple[User, list[Group]]:
        """Insert the user and its default group membership in the caller's transaction.

        Nothing is committed here: a failure in either insert rolls back both with the session.
        """
        with store_errors("create user"):
            r = await self._session.execute(select(User.id).where(User.username == username))
            if r.scalar_one_or_none() is not None:
                raise ConflictError("user already exists")
            user = User(username=username, password_hash=password_hash)
            self._session.add(user)
            await self._session.flush()
            group = await self._get_or_create_group(self.default_group)
            await self._session.execute(insert(user_groups).values(user_id=user.id, group_id=group.id))
        logger.info("Created user id=%s username=%s", user.id, username)
        return user, [group]

    async def update_password(self, user_id: int, password_hash: str) -> None:
        with store_errors("update password"):
            # default synchronization keeps an already loaded User in step with the row
            r = await self._session.execute(
                update(User).where(User.id == user_id).values(password_hash=password_hash)
            )
        if r.rowcount == 0:
            raise NotFoundError(f"user {user_id} not found")

    async def list_groups(self, user_id: int) -> list[Group]:
        with store_errors("list groups"):
            r = await self._session.execute(
                select(Group)
                .join(user_groups, user_groups.c.group_id == Group.id)
                .where(user_groups.c.user_id == user_id)
                .order_by(Group.id)
            )
            return list(r.scalars().all())

    async def add_user_to_group(self, user_id: int, group_name: str) -> Group:
        with store_errors("add user to group"):
            group = await self._get_or_create_group(group_name)
            r = await self._session.execute(
                select(user_groups.c.user_id).where(
                    user_groups.c.user_id == user_id,
                    user_groups.c.group_id == group.id,
                )
            )
            if r.first() is None:
                await self._session.execute(insert(user_groups).values(user_id=user_id, group_id=group.id))
        return group
