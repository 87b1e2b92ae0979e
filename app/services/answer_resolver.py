"""Answer resolution: the core raid combat loop.

One submitted answer from one team, resolved against the shared boss and class HP:
  1. Correct answers damage the boss by question difficulty (doubled once by a
     charged critical hit).
  2. Wrong answers draw a random counterattack that damages the class pool and may
     heal the boss, unless the team's shield absorbs it.
  3. The team advances one question and both its cooldowns tick down.
  4. Victory if the boss is at 0, defeat if the class is at 0, and defeat if every
     team has run out of questions with both pools still standing.

Submissions against a missing or finished battle, an unknown team, or a team that
has already answered everything are silently ignored so stale or duplicate clicks
are harmless.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.data.combat_tables import DEFAULT_TABLES, CombatTables
from app.models.boss_battle import BattleStatus
from app.services.battle_events import BattleBroadcaster, battle_events
from app.services.battle_state import Battle
from app.services.battle_transactions import run_battle_transaction, utcnow

logger = logging.getLogger(__name__)


@dataclass
class CombatResult:
    """Outcome of one accepted answer; also the log entry stored for it."""
    type: str                           # "attack" or "miss"
    correct: bool
    team: str
    team_color: str
    team_id: str
    question_prompt: str
    timestamp: str
    damage: int | None = None
    critical_hit: bool | None = None
    counterattack: dict[str, Any] | None = None
    shielded: bool | None = None
    class_damage: int | None = None
    boss_heal: int | None = None
    victory: bool | None = None
    defeat: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class AnswerOutcome:
    battle: Battle | None
    result: CombatResult | None


def check_terminal(battle: Battle) -> BattleStatus:
    """Boss at 0 wins; otherwise class at 0 loses; otherwise a raid out of questions loses."""
    if battle.boss.current_hp <= 0:
        return BattleStatus.victory
    if battle.class_hp.current <= 0:
        return BattleStatus.defeat
    if battle.all_teams_finished():
        return BattleStatus.defeat
    return BattleStatus.active


def resolve_answer(
    battle: Battle,
    team_id: str,
    answer_index: int,
    tables: CombatTables = DEFAULT_TABLES,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> CombatResult | None:
    """Apply one answer to *battle* in place.

    Returns None, leaving *battle* untouched, when the answer cannot be accepted.
    """
    _rand = rng or random

    if not battle.is_active:
        return None
    tp = battle.team_progress.get(team_id)
    if tp is None or tp.finished:
        return None
    q_idx = tp.current_question_index()
    if q_idx is None or q_idx >= len(battle.questions):
        return None

    question = battle.questions[q_idx]
    correct = answer_index == question.correct_index
    result = CombatResult(
        type="attack" if correct else "miss",
        correct=correct,
        team=tp.name,
        team_color=tp.color,
        team_id=team_id,
        question_prompt=question.prompt,
        timestamp=(now or utcnow()).isoformat(),
    )

    if correct:
        damage = tables.base_damage(question.difficulty)
        if tp.critical_hit_active:
            damage *= 2
            tp.critical_hit_active = False
            result.critical_hit = True
        battle.boss.take_damage(damage)
        tp.damage += damage
        tp.correct_count += 1
        result.damage = damage
    else:
        tp.wrong_count += 1
        counter = _rand.choice(tables.counterattacks)
        result.counterattack = {k: v for k, v in asdict(counter).items() if v is not None}

        if tp.shield_active:
            tp.shield_active = False
            result.shielded = True
        else:
            class_damage = counter.class_damage or 1
            battle.class_hp.take_damage(class_damage)
            result.class_damage = class_damage
            if counter.boss_heal:
                battle.boss.heal(counter.boss_heal)
                result.boss_heal = counter.boss_heal

    tp.advance()
    tp.tick_cooldowns()

    status = check_terminal(battle)
    if status == BattleStatus.victory:
        result.victory = True
    elif status == BattleStatus.defeat:
        result.defeat = True
    battle.status = status

    battle.log.push(result.to_dict())
    return result


async def submit_answer(
    db: AsyncSession,
    course_id: str,
    battle_id: str,
    team_id: str,
    answer_index: int,
    tables: CombatTables = DEFAULT_TABLES,
    rng: random.Random | None = None,
    events: BattleBroadcaster | None = None,
) -> AnswerOutcome:
    """Resolve one team's answer as a single atomic, retried transaction.

    Every precondition is checked inside the transaction.  A rejected submission is
    a no-op: outcome.result is None and nothing is written.
    """

    def mutate(battle: Battle) -> tuple[CombatResult | None, bool]:
        result = resolve_answer(battle, team_id, answer_index, tables=tables, rng=rng)
        return result, result is not None

    battle, result = await run_battle_transaction(db, course_id, battle_id, mutate)

    if battle is None:
        logger.debug("Answer for missing battle %s ignored", battle_id)
        return AnswerOutcome(battle=None, result=None)
    if result is None:
        logger.debug("Answer from team %s on battle %s ignored", team_id, battle_id)
        return AnswerOutcome(battle=battle, result=None)

    if not battle.is_active:
        logger.info(
            "Battle %s ended in %s (boss_hp=%d class_hp=%d)",
            battle_id, battle.status.value, battle.boss.current_hp, battle.class_hp.current,
        )
    (events or battle_events).publish(battle_id, battle.to_snapshot())
    return AnswerOutcome(battle=battle, result=result)
