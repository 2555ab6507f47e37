"""
Email loop protection for the postmaster.

Bounds the number of automatic emails sent to one recipient per calendar
day. ``check()`` and ``record()`` are separate calls and are not atomic
with respect to each other; ``check_and_record()`` does both in a single
statement for callers that need exact enforcement.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from sqlalchemy import String, delete, func, insert, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.core.config import settings
from supportdesk.db.models import LoopProtectionEntry

logger = logging.getLogger(__name__)


class LoopProtection:
    def __init__(
        self,
        *,
        max_emails: int | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        # 0 is a valid ceiling: nothing may be sent
        self.max_emails = settings.postmaster_max_emails if max_emails is None else max_emails
        self._clock = clock

    def day_bucket(self) -> str:
        return self._clock().isoformat()

    def _log_denied(self, recipient: str) -> None:
        logger.warning(
            "LoopProtection: send no more emails to '%s'! Max. count of %s has been reached!",
            recipient,
            self.max_emails,
        )

    async def _purge(self, session: AsyncSession, today: str) -> None:
        await session.execute(delete(LoopProtectionEntry).where(LoopProtectionEntry.sent_date != today))

    async def record(self, session: AsyncSession, recipient: str) -> bool | None:
        """Log one sent email to ``recipient`` and drop entries from other days."""
        if not recipient:
            logger.error("Need recipient!")
            return None

        today = self.day_bucket()
        try:
            session.add(LoopProtectionEntry(sent_to=recipient, sent_date=today))
            await session.flush()
            await self._purge(session, today)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("LoopProtection: could not record email to '%s': %s", recipient, e)
            return None
        return True

    async def count(self, session: AsyncSession, recipient: str) -> int:
        res = await session.execute(
            select(func.count())
            .select_from(LoopProtectionEntry)
            .where(
                LoopProtectionEntry.sent_to == recipient,
                LoopProtectionEntry.sent_date == self.day_bucket(),
            )
        )
        return int(res.scalar_one())

    async def check(self, session: AsyncSession, recipient: str) -> bool | None:
        """True while another email to ``recipient`` is allowed today."""
        if not recipient:
            logger.error("Need recipient!")
            return None

        try:
            sent = await self.count(session, recipient)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("LoopProtection: could not check '%s': %s", recipient, e)
            return None

        if sent >= self.max_emails:
            self._log_denied(recipient)
            return False
        return True

    async def check_and_record(self, session: AsyncSession, recipient: str) -> bool | None:
        """Reserve one send slot for ``recipient`` if today's ceiling allows it."""
        if not recipient:
            logger.error("Need recipient!")
            return None

        today = self.day_bucket()
        sent_today = (
            select(func.count())
            .select_from(LoopProtectionEntry)
            .where(
                LoopProtectionEntry.sent_to == recipient,
                LoopProtectionEntry.sent_date == today,
            )
            .correlate(None)
            .scalar_subquery()
        )
        stmt = insert(LoopProtectionEntry).from_select(
            ["sent_to", "sent_date"],
            select(literal(recipient, String), literal(today, String)).where(sent_today < self.max_emails),
        )

        try:
            res = await session.execute(stmt)
            inserted = res.rowcount == 1
            await self._purge(session, today)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("LoopProtection: could not reserve email to '%s': %s", recipient, e)
            return None

        if not inserted:
            self._log_denied(recipient)
            return False
        return True
