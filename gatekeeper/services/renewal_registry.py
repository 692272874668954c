"""Renewal token registry: server-side list of live renewal token ids per user.

A renewal token is only accepted while its record exists and has not expired;
the registry checks its own ``expires_at`` and does not trust the signed claims.
Rotation soft-invalidates the old record by pulling its expiry in to
``now + grace_window`` so that a duplicate refresh racing the first one (two
tabs, client retry) still succeeds for a short, bounded time.
"""

import logging
from datetime import timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import Settings
from gatekeeper.core.clock import Clock, utcnow
from gatekeeper.core.errors import NotFoundError, store_errors
from gatekeeper.models.renewal_record import RenewalRecord

logger = logging.getLogger(__name__)


class RenewalRegistry:
    def __init__(self, session: AsyncSession, conf: Settings, clock: Clock = utcnow):
        self._session = session
        self.grace_window = timedelta(seconds=conf.refresh_grace_seconds)
        self._clock = clock

    async def save(self, user_id: int, token_id: str, ttl: timedelta) -> RenewalRecord:
        record = RenewalRecord(user_id=user_id, token_id=token_id, expires_at=self._clock() + ttl)
        with store_errors("save renewal record"):
            self._session.add(record)
            await self._session.flush()
        return record

    async def validate(self, user_id: int, token_id: str) -> None:
        with store_errors("validate renewal record"):
            r = await self._session.execute(
                select(RenewalRecord.id).where(
                    RenewalRecord.user_id == user_id,
                    RenewalRecord.token_id == token_id,
                    RenewalRecord.expires_at >= self._clock(),
                )
            )
            found = r.scalar_one_or_none()
        if found is None:
            raise NotFoundError("renewal token not recognised")

    async def invalidate(self, token_id: str) -> None:
        """Soft-invalidate: the record stays valid until now + grace_window, never longer.

        Runs in a savepoint so a failure rolls back this statement only and the
        caller's transaction stays usable.
        """
        grace_until = self._clock() + self.grace_window
        with store_errors("invalidate renewal record"):
            async with self._session.begin_nested():
                await self._session.execute(
                    update(RenewalRecord)
                    .where(RenewalRecord.token_id == token_id, RenewalRecord.expires_at > grace_until)
                    .values(expires_at=grace_until)
                    .execution_options(synchronize_session=False)
                )

    async def revoke(self, token_id: str) -> bool:
        """Hard-delete one record. Returns False when there was nothing to delete."""
        with store_errors("revoke renewal record"):
            r = await self._session.execute(
                delete(RenewalRecord)
                .where(RenewalRecord.token_id == token_id)
                .execution_options(synchronize_session=False)
            )
        return r.rowcount > 0

    async def delete_all_for_user(self, user_id: int, *, keep_token_id: str | None = None) -> int:
        stmt = delete(RenewalRecord).where(RenewalRecord.user_id == user_id)
        if keep_token_id is not None:
            stmt = stmt.where(RenewalRecord.token_id != keep_token_id)
        with store_errors("delete renewal records for user"):
            r = await self._session.execute(stmt.execution_options(synchronize_session=False))
        logger.info("Deleted %s renewal record(s) for user_id=%s", r.rowcount, user_id)
        return r.rowcount

    async def delete_expired(self) -> int:
        with store_errors("delete expired renewal records"):
            r = await self._session.execute(
                delete(RenewalRecord)
                .where(RenewalRecord.expires_at < self._clock())
                .execution_options(synchronize_session=False)
            )
        return r.rowcount
