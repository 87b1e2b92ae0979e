"""Atomic read-modify-write of a Battle with retry on write conflict.

Many teams write the same BossBattle row at once.  Each call loads the row,
rebuilds the Battle aggregate, runs the caller's mutation, and writes the whole
aggregate back with an UPDATE guarded by the row's version.  If another writer
committed in between, the UPDATE matches nothing, SQLAlchemy raises
StaleDataError, and the whole body is run again against the fresh row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.models.boss_battle import BossBattle
from app.services.battle_state import Battle, battle_from_row, write_battle_to_row

logger = logging.getLogger(__name__)


# mutate(battle) -> (value, dirty).  Nothing is written when dirty is False.
Mutation = Callable[[Battle], tuple[Any, bool]]


class TransactionConflictError(Exception):
    """Raised when every attempt lost the race to a concurrent writer."""

    def __init__(self, battle_id: str, attempts: int):
        super().__init__(
            f"Battle {battle_id} could not be updated after {attempts} attempts"
        )
        self.battle_id = battle_id
        self.attempts = attempts


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def load_battle_row(
    db: AsyncSession, course_id: str, battle_id: str
) -> BossBattle | None:
    """Return the row as currently committed, discarding any stale identity-map copy."""
    result = await db.execute(
        select(BossBattle)
        .where(BossBattle.id == battle_id, BossBattle.course_id == course_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def run_battle_transaction(
    db: AsyncSession,
    course_id: str,
    battle_id: str,
    mutate: Mutation,
    max_attempts: int | None = None,
) -> tuple[Battle | None, Any]:
    """Run *mutate* against the battle atomically, retrying on conflict.

    Returns (battle, value).  battle is None when the record does not exist, in
    which case *mutate* is never called.  *mutate* may be executed several times,
    so it must derive everything from the Battle it is given.
    """
    attempts = max_attempts or settings.transaction_max_attempts

    for attempt in range(1, attempts + 1):
        row = await load_battle_row(db, course_id, battle_id)
        if row is None:
            await db.rollback()
            return None, None

        battle = battle_from_row(row)
        value, dirty = mutate(battle)
        if not dirty:
            await db.rollback()
            return battle, value

        battle.last_updated = utcnow()
        write_battle_to_row(battle, row)
        try:
            await db.commit()
        except StaleDataError:
            await db.rollback()
            logger.warning(
                "Write conflict on battle %s (attempt %d/%d); retrying",
                battle_id, attempt, attempts,
            )
            continue

        battle.version = row.version
        return battle, value

    logger.error("Giving up on battle %s after %d conflicting attempts", battle_id, attempts)
    raise TransactionConflictError(battle_id, attempts)
