"""In-memory Battle aggregate.

The BossBattle row stores the raid as JSON columns; resolvers never touch those
columns directly.  They load a Battle, mutate it, and write every field back in
one go (see battle_transactions.run_battle_transaction).
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Iterable

from app.config import settings
from app.models.boss_battle import BattleStatus, BossBattle
from app.services.sanitize import sanitize


@dataclass
class BossState:
    id: str
    name: str
    max_hp: int
    current_hp: int
    icon: str = ""
    description: str = ""
    base_hp: int = 0

    def take_damage(self, amount: int) -> None:
        self.current_hp = max(0, self.current_hp - amount)

    def heal(self, amount: int) -> None:
        self.current_hp = min(self.max_hp, self.current_hp + amount)


@dataclass
class ClassHP:
    max: int
    current: int

    def take_damage(self, amount: int) -> None:
        self.current = max(0, self.current - amount)


@dataclass(frozen=True)
class Question:
    prompt: str
    options: list[str]
    correct_index: int
    explanation: str = ""
    difficulty: str = "normal"
    source: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Question":
        correct_index = data.get("correct_index")
        return cls(
            prompt=data.get("prompt") or "",
            options=list(data.get("options") or []),
            correct_index=0 if correct_index is None else correct_index,
            explanation=data.get("explanation") or "",
            difficulty=data.get("difficulty") or "normal",
            source=data.get("source") or "",
        )


@dataclass
class TeamProgress:
    name: str
    color: str
    question_order: list[int]
    current_index: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    damage: int = 0
    shield_active: bool = False
    critical_hit_active: bool = False
    shield_cooldown: int = 0
    crit_cooldown: int = 0
    finished: bool = False

    def current_question_index(self) -> int | None:
        if self.finished or self.current_index >= len(self.question_order):
            return None
        return self.question_order[self.current_index]

    def advance(self) -> None:
        self.current_index += 1
        if self.current_index >= len(self.question_order):
            self.finished = True

    def tick_cooldowns(self) -> None:
        self.shield_cooldown = max(0, self.shield_cooldown - 1)
        self.crit_cooldown = max(0, self.crit_cooldown - 1)


class BattleLog:
    """Fixed-capacity, newest-first event log."""

    def __init__(self, entries: Iterable[dict[str, Any]] = (), limit: int | None = None):
        self.limit = limit or settings.battle_log_limit
        self._entries: deque[dict[str, Any]] = deque(entries, maxlen=self.limit)

    def push(self, entry: dict[str, Any]) -> None:
        # appendleft on a bounded deque evicts from the right (the oldest entry)
        self._entries.appendleft(sanitize(entry))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, index: int) -> dict[str, Any]:
        return self._entries[index]

    def to_list(self) -> list[dict[str, Any]]:
        return list(self._entries)


@dataclass
class Battle:
    id: str
    course_id: str
    status: BattleStatus
    boss: BossState
    class_hp: ClassHP
    questions: list[Question]
    team_progress: dict[str, TeamProgress]
    log: BattleLog = field(default_factory=BattleLog)
    version: int = 0
    created_at: datetime | None = None
    last_updated: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == BattleStatus.active

    def all_teams_finished(self) -> bool:
        return all(team.finished for team in self.team_progress.values())

    def to_snapshot(self) -> dict[str, Any]:
        """Full, JSON-ready view of the record as observers receive it."""
        return sanitize({
            "id": self.id,
            "course_id": self.course_id,
            "status": self.status.value,
            "boss": asdict(self.boss),
            "class_hp": asdict(self.class_hp),
            "questions": [asdict(q) for q in self.questions],
            "team_progress": {tid: asdict(tp) for tid, tp in self.team_progress.items()},
            "log": self.log.to_list(),
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        })


def battle_from_row(row: BossBattle, log_limit: int | None = None) -> Battle:
    return Battle(
        id=row.id,
        course_id=row.course_id,
        status=BattleStatus(row.status),
        boss=BossState(**row.boss),
        class_hp=ClassHP(**row.class_hp),
        questions=[Question.from_dict(q) for q in row.questions],
        team_progress={tid: TeamProgress(**tp) for tid, tp in row.team_progress.items()},
        log=BattleLog(row.log, limit=log_limit),
        version=row.version,
        created_at=row.created_at,
        last_updated=row.last_updated,
    )


def write_battle_to_row(battle: Battle, row: BossBattle) -> None:
    """Copy every field of *battle* onto *row*, sanitizing each JSON column.

    Fresh objects are assigned (never mutated in place) so SQLAlchemy sees the change.
    """
    row.status = battle.status
    row.boss = sanitize(asdict(battle.boss))
    row.class_hp = sanitize(asdict(battle.class_hp))
    row.questions = sanitize([asdict(q) for q in battle.questions])
    row.team_progress = sanitize(
        {tid: asdict(tp) for tid, tp in battle.team_progress.items()}
    )
    row.log = sanitize(battle.log.to_list())
    row.last_updated = battle.last_updated
