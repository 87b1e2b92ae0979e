"""BossBattle model: the single shared record of one co-op raid."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class BattleStatus(str, enum.Enum):
    active = "active"
    victory = "victory"
    defeat = "defeat"


class BossBattle(Base):
    """One row per raid.  Every write replaces the whole aggregate.

    version is the mapper's version_id_col: each ORM UPDATE is issued as
    ``... WHERE id = :id AND version = :version_read`` and raises StaleDataError
    when another writer committed first.

    boss: {"id", "name", "icon", "description", "base_hp", "max_hp", "current_hp"}
    class_hp: {"max", "current"}
    questions: list of {"prompt", "options", "correct_index", "explanation",
        "difficulty", "source"}
    team_progress: {team_id: {"name", "color", "question_order", "current_index", ...}}
    log: newest-first list of event dicts, bounded by settings.battle_log_limit
    """

    __tablename__ = "boss_battles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    status: Mapped[BattleStatus] = mapped_column(
        Enum(BattleStatus), nullable=False, default=BattleStatus.active
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    boss: Mapped[dict] = mapped_column(JSON, nullable=False)
    class_hp: Mapped[dict] = mapped_column(JSON, nullable=False)
    questions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    team_progress: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    log: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __mapper_args__ = {"version_id_col": version}
