from typing import Any, Optional

from pydantic import BaseModel, field_validator

from app.models.boss_battle import BattleStatus

MIN_PLAYABLE_QUESTIONS = 3


class QuestionIn(BaseModel):
    prompt: str = ""
    options: list[str] = []
    correct_index: int = 0
    explanation: str = ""
    difficulty: str = "normal"
    source: str = ""


class TeamIn(BaseModel):
    id: str
    name: Optional[str] = None
    color: Optional[str] = None


class BattleCreate(BaseModel):
    boss_id: str = "dragon"
    questions: list[QuestionIn]
    teams: list[TeamIn]
    avg_team_size: Optional[int] = None

    @field_validator("questions")
    @classmethod
    def validate_questions(cls, v: list[QuestionIn]) -> list[QuestionIn]:
        if len(v) < MIN_PLAYABLE_QUESTIONS:
            raise ValueError(f"A battle needs at least {MIN_PLAYABLE_QUESTIONS} questions")
        return v

    @field_validator("teams")
    @classmethod
    def validate_teams(cls, v: list[TeamIn]) -> list[TeamIn]:
        if not v:
            raise ValueError("A battle needs at least one team")
        ids = [t.id for t in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Team ids must be unique")
        return v

    @field_validator("avg_team_size")
    @classmethod
    def validate_avg_team_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("avg_team_size must be at least 1")
        return v


class AnswerSubmit(BaseModel):
    team_id: str
    answer_index: int


class AbilityUse(BaseModel):
    team_id: str
    ability_id: str
    # hint only: an option the client has already struck out
    eliminated_option: Optional[int] = None
    # hint only: the question the client is showing
    question_index: Optional[int] = None


class EndBattle(BaseModel):
    status: BattleStatus = BattleStatus.defeat

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: BattleStatus) -> BattleStatus:
        if v == BattleStatus.active:
            raise ValueError("status must be 'victory' or 'defeat'")
        return v


class BossResponse(BaseModel):
    id: str
    name: str
    icon: str = ""
    description: str = ""
    base_hp: int = 0
    max_hp: int
    current_hp: int


class ClassHPResponse(BaseModel):
    max: int
    current: int


class QuestionResponse(BaseModel):
    prompt: str
    options: list[str]
    correct_index: int
    explanation: str
    difficulty: str
    source: str


class TeamProgressResponse(BaseModel):
    name: str
    color: str
    question_order: list[int]
    current_index: int
    correct_count: int
    wrong_count: int
    damage: int
    shield_active: bool
    critical_hit_active: bool
    shield_cooldown: int
    crit_cooldown: int
    finished: bool


class BattleResponse(BaseModel):
    id: str
    course_id: str
    status: BattleStatus
    boss: BossResponse
    class_hp: ClassHPResponse
    questions: list[QuestionResponse]
    team_progress: dict[str, TeamProgressResponse]
    log: list[dict[str, Any]]
    version: int
    created_at: Optional[str] = None
    last_updated: Optional[str] = None


class AnswerResponse(BaseModel):
    result: Optional[dict[str, Any]]
    battle: Optional[BattleResponse]


class AbilityResponse(BaseModel):
    error: Optional[str] = None
    eliminated_option: Optional[int] = None


class LessonIn(BaseModel):
    title: str = ""
    blocks: list[dict[str, Any]] = []
