"""Battle factory: builds and stores the fully-formed record of a new raid."""

from __future__ import annotations

import logging
import random
import secrets
import time
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.data.combat_tables import DEFAULT_TABLES, CombatTables
from app.models.boss_battle import BattleStatus, BossBattle
from app.services.battle_events import BattleBroadcaster, battle_events
from app.services.battle_state import (
    Battle,
    BattleLog,
    BossState,
    ClassHP,
    Question,
    TeamProgress,
    write_battle_to_row,
)
from app.services.battle_transactions import utcnow
from app.services.scaling import calculate_boss_hp, calculate_class_hp

logger = logging.getLogger(__name__)

DEFAULT_TEAM_COLOR = "#888"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    digits = ""
    while True:
        value, rem = divmod(value, 36)
        digits = _BASE36[rem] + digits
        if value == 0:
            return digits


def new_battle_id() -> str:
    """battle-<ms timestamp in base 36>-<random suffix>."""
    return f"battle-{_to_base36(int(time.time() * 1000))}-{secrets.token_hex(3)}"


def shuffled_question_order(question_count: int, rng: random.Random | None = None) -> list[int]:
    """An independent random permutation of range(question_count) (Fisher-Yates)."""
    _rand = rng or random
    indices = list(range(question_count))
    _rand.shuffle(indices)
    return indices


def build_battle(
    course_id: str,
    boss_id: str | None,
    questions: Sequence[dict[str, Any] | Question],
    team_ids: Sequence[str],
    team_names: Sequence[str | None] | None = None,
    team_colors: Sequence[str | None] | None = None,
    avg_team_size: int | None = None,
    tables: CombatTables = DEFAULT_TABLES,
    rng: random.Random | None = None,
    battle_id: str | None = None,
) -> Battle:
    """Build a new active Battle in memory.

    The boss falls back to the first catalog entry for an unknown id.  Each team
    gets its own shuffle of every question.  No minimum question count is enforced
    here; callers decide what is playable.
    """
    avg_team_size = avg_team_size or settings.default_avg_team_size
    boss_def = tables.get_boss(boss_id)
    boss_max_hp = calculate_boss_hp(boss_def.base_hp, len(team_ids), avg_team_size)
    class_max_hp = calculate_class_hp(len(team_ids), avg_team_size)

    normalized = [q if isinstance(q, Question) else Question.from_dict(q) for q in questions]

    team_progress: dict[str, TeamProgress] = {}
    for i, team_id in enumerate(team_ids):
        name = team_names[i] if team_names and i < len(team_names) else None
        color = team_colors[i] if team_colors and i < len(team_colors) else None
        team_progress[team_id] = TeamProgress(
            name=name or f"Team {i + 1}",
            color=color or DEFAULT_TEAM_COLOR,
            question_order=shuffled_question_order(len(normalized), rng),
        )

    now = utcnow()
    return Battle(
        id=battle_id or new_battle_id(),
        course_id=course_id,
        status=BattleStatus.active,
        boss=BossState(
            id=boss_def.boss_id,
            name=boss_def.name,
            icon=boss_def.icon,
            description=boss_def.description,
            base_hp=boss_def.base_hp,
            max_hp=boss_max_hp,
            current_hp=boss_max_hp,
        ),
        class_hp=ClassHP(max=class_max_hp, current=class_max_hp),
        questions=normalized,
        team_progress=team_progress,
        log=BattleLog(),
        created_at=now,
        last_updated=now,
    )


async def create_battle(
    db: AsyncSession,
    course_id: str,
    boss_id: str | None,
    questions: Sequence[dict[str, Any] | Question],
    team_ids: Sequence[str],
    team_names: Sequence[str | None] | None = None,
    team_colors: Sequence[str | None] | None = None,
    avg_team_size: int | None = None,
    tables: CombatTables = DEFAULT_TABLES,
    rng: random.Random | None = None,
    events: BattleBroadcaster | None = None,
) -> Battle:
    """Build a battle and store it with a single insert."""
    battle = build_battle(
        course_id,
        boss_id,
        questions,
        team_ids,
        team_names=team_names,
        team_colors=team_colors,
        avg_team_size=avg_team_size,
        tables=tables,
        rng=rng,
    )

    row = BossBattle(id=battle.id, course_id=course_id, created_at=battle.created_at)
    write_battle_to_row(battle, row)
    db.add(row)
    await db.commit()

    battle.version = row.version
    logger.info(
        "Created battle %s for course %s: boss=%s hp=%d class_hp=%d teams=%d questions=%d",
        battle.id, course_id, battle.boss.id, battle.boss.max_hp,
        battle.class_hp.max, len(team_ids), len(battle.questions),
    )
    (events or battle_events).publish(battle.id, battle.to_snapshot())
    return battle
