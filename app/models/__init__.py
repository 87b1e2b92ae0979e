from app.models.base import Base  # noqa: F401
from app.models.boss_battle import BattleStatus, BossBattle  # noqa: F401
from app.models.mana_pool import ManaPool  # noqa: F401
