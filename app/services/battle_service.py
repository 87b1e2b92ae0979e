"""Administrative battle lifecycle: read, list, forced end, delete.

None of these run combat logic.  end_battle is a direct status overwrite rather
than a read-modify-write of the aggregate; it still bumps the version so any answer
transaction racing it retries and then sees the battle as over.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.boss_battle import BattleStatus, BossBattle
from app.services.battle_events import BattleBroadcaster, battle_events
from app.services.battle_state import Battle, battle_from_row
from app.services.battle_transactions import load_battle_row, utcnow

logger = logging.getLogger(__name__)


async def get_battle(db: AsyncSession, course_id: str, battle_id: str) -> Battle | None:
    row = await load_battle_row(db, course_id, battle_id)
    return battle_from_row(row) if row is not None else None


async def list_battles(db: AsyncSession, course_id: str) -> list[Battle]:
    """All battles of a course, newest first."""
    result = await db.execute(
        select(BossBattle)
        .where(BossBattle.course_id == course_id)
        .order_by(BossBattle.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return [battle_from_row(row) for row in result.scalars().all()]


async def end_battle(
    db: AsyncSession,
    course_id: str,
    battle_id: str,
    status: BattleStatus = BattleStatus.defeat,
    events: BattleBroadcaster | None = None,
) -> Battle | None:
    """Force an active battle to *status*.

    Returns the battle afterwards, or None if it does not exist.  A battle that has
    already ended is returned unchanged.
    """
    if status == BattleStatus.active:
        raise ValueError("A battle can only be ended as 'victory' or 'defeat'")

    result = await db.execute(
        update(BossBattle)
        .where(
            BossBattle.id == battle_id,
            BossBattle.course_id == course_id,
            BossBattle.status == BattleStatus.active,
        )
        .values(status=status, last_updated=utcnow(), version=BossBattle.version + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    battle = await get_battle(db, course_id, battle_id)
    if battle is None:
        return None
    if result.rowcount:
        logger.info("Battle %s force-ended as %s", battle_id, status.value)
        (events or battle_events).publish(battle_id, battle.to_snapshot())
    return battle


async def delete_battle(
    db: AsyncSession,
    course_id: str,
    battle_id: str,
    events: BattleBroadcaster | None = None,
) -> bool:
    """Delete the battle; returns False if it did not exist."""
    result = await db.execute(
        delete(BossBattle).where(
            BossBattle.id == battle_id, BossBattle.course_id == course_id
        )
    )
    await db.commit()
    if not result.rowcount:
        return False
    (events or battle_events).close(battle_id)
    logger.info("Battle %s deleted from course %s", battle_id, course_id)
    return True
