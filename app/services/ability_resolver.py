"""Team abilities.

Shield and critical hit are one-shot flags armed on the battle record inside the
same retried transaction as answers, gated by a per-team cooldown.  The hint is
different: it is paid from the class mana pool and only tells the caller which
wrong option to strike out.  It never writes the battle record.

Validation failures are returned as error strings, never raised.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.data.combat_tables import DEFAULT_TABLES, CombatTables
from app.services.battle_events import BattleBroadcaster, battle_events
from app.services.battle_state import Battle, battle_from_row
from app.services.battle_transactions import (
    load_battle_row,
    run_battle_transaction,
    utcnow,
)
from app.services.mana_service import spend_mana

logger = logging.getLogger(__name__)

HINT_ABILITY_ID = "hint"
HINT_MANA_REASON = "Boss Battle: Hint used"
QUESTION_CHANGED = "Question has changed"

# ability_id -> (TeamProgress flag, TeamProgress cooldown counter)
ABILITY_SLOTS: dict[str, tuple[str, str]] = {
    "shield": ("shield_active", "shield_cooldown"),
    "critical_hit": ("critical_hit_active", "crit_cooldown"),
}


@dataclass
class AbilityOutcome:
    error: str | None = None


@dataclass
class HintOutcome:
    error: str | None = None
    eliminated_option: int | None = None


def apply_ability(
    battle: Battle,
    team_id: str,
    ability_id: str,
    tables: CombatTables = DEFAULT_TABLES,
) -> str | None:
    """Arm *ability_id* for *team_id* in place.  Returns an error message, or None on success."""
    if not battle.is_active:
        return "Battle is not active"
    tp = battle.team_progress.get(team_id)
    if tp is None:
        return "Team not found"
    ability = tables.abilities.get(ability_id)
    if ability is None:
        return "Unknown ability"
    if ability_id == HINT_ABILITY_ID:
        return "Hint is paid from the class mana pool, not the battle"
    slot = ABILITY_SLOTS.get(ability_id)
    if slot is None:
        return "Unknown ability"

    flag_attr, cooldown_attr = slot
    if getattr(tp, flag_attr):
        return f"{ability.name} already active"
    cooldown = getattr(tp, cooldown_attr)
    if cooldown > 0:
        return f"{ability.name} on cooldown ({cooldown} questions)"

    setattr(tp, flag_attr, True)
    setattr(tp, cooldown_attr, ability.cooldown_questions or 0)

    battle.log.push({
        "type": "ability",
        "team": tp.name,
        "team_color": tp.color,
        "team_id": team_id,
        "ability": ability.name,
        "ability_icon": ability.icon,
        "timestamp": utcnow().isoformat(),
    })
    return None


async def use_ability(
    db: AsyncSession,
    course_id: str,
    battle_id: str,
    team_id: str,
    ability_id: str,
    tables: CombatTables = DEFAULT_TABLES,
    events: BattleBroadcaster | None = None,
) -> AbilityOutcome:
    """Arm a shield or critical hit atomically; returns AbilityOutcome(error=...)."""

    def mutate(battle: Battle) -> tuple[str | None, bool]:
        error = apply_ability(battle, team_id, ability_id, tables=tables)
        return error, error is None

    battle, error = await run_battle_transaction(db, course_id, battle_id, mutate)
    if battle is None:
        return AbilityOutcome(error="Battle not found")
    if error is not None:
        return AbilityOutcome(error=error)

    (events or battle_events).publish(battle_id, battle.to_snapshot())
    return AbilityOutcome()


async def use_hint(
    db: AsyncSession,
    course_id: str,
    battle_id: str,
    team_id: str,
    already_eliminated: int | None = None,
    question_index: int | None = None,
    tables: CombatTables = DEFAULT_TABLES,
    rng: random.Random | None = None,
) -> HintOutcome:
    """Pay the hint cost from the class mana pool and pick one wrong option to hide.

    *question_index* is the question the client is showing; the hint is refused if
    the team has already moved past it.  Mana is only charged when there is a wrong
    option left to eliminate, and the team's question is checked again inside the
    mana transaction so a concurrent answer cannot leave the hint pointing at the
    previous question.
    """
    _rand = rng or random

    row = await load_battle_row(db, course_id, battle_id)
    if row is None:
        await db.rollback()
        return HintOutcome(error="Battle not found")
    battle = battle_from_row(row)

    error = None
    tp = battle.team_progress.get(team_id)
    if not battle.is_active:
        error = "Battle is not active"
    elif tp is None:
        error = "Team not found"
    elif tp.current_question_index() is None:
        error = "Team has no question left"
    elif question_index is not None and question_index != tp.current_question_index():
        error = QUESTION_CHANGED
    if error is not None:
        await db.rollback()
        return HintOutcome(error=error)

    q_idx = tp.current_question_index()
    question = battle.questions[q_idx]
    candidates = [
        i for i in range(len(question.options))
        if i != question.correct_index and i != already_eliminated
    ]
    if not candidates:
        await db.rollback()
        return HintOutcome(error="No wrong answer left to eliminate")

    hint = tables.abilities.get(HINT_ABILITY_ID)
    cost = hint.mana_cost if hint and hint.mana_cost else settings.hint_mana_cost
    try:
        await spend_mana(db, course_id, cost, HINT_MANA_REASON)
    except ValueError as e:
        await db.rollback()
        return HintOutcome(error=str(e))

    # Re-read inside the write transaction; an answer committed since the first
    # read means the hint would apply to a question the team has left
    row = await load_battle_row(db, course_id, battle_id)
    current = battle_from_row(row) if row is not None else None
    if (
        current is None
        or not current.is_active
        or current.team_progress[team_id].current_question_index() != q_idx
    ):
        await db.rollback()
        logger.info("Hint for team %s on battle %s dropped: question changed", team_id, battle_id)
        return HintOutcome(error=QUESTION_CHANGED)
    await db.commit()

    eliminated = _rand.choice(candidates)
    logger.info("Team %s used a hint on battle %s, eliminating option %d", team_id, battle_id, eliminated)
    return HintOutcome(eliminated_option=eliminated)
