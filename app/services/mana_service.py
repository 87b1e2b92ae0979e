"""Class mana pool: balance check and deduction for paid battle abilities."""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.mana_pool import ManaPool

logger = logging.getLogger(__name__)


async def get_mana_pool(db: AsyncSession, course_id: str) -> ManaPool | None:
    result = await db.execute(
        select(ManaPool)
        .where(ManaPool.course_id == course_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def spend_mana(db: AsyncSession, course_id: str, amount: int, reason: str) -> int:
    """Deduct *amount* MP from the course pool in one conditional UPDATE.

    Raises ValueError if the pool is missing, disabled, or short of mana.
    Returns the remaining balance.  The caller commits.
    """
    result = await db.execute(
        update(ManaPool)
        .where(
            ManaPool.course_id == course_id,
            ManaPool.enabled == True,  # noqa: E712
            ManaPool.current_mp >= amount,
        )
        .values(current_mp=ManaPool.current_mp - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ValueError(f"Not enough class mana (need {amount} MP)")

    pool = await get_mana_pool(db, course_id)
    logger.info("Course %s spent %d MP: %s (%d left)", course_id, amount, reason, pool.current_mp)
    return pool.current_mp
