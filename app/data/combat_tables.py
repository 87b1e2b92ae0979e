"""Static reference data for the co-op Boss Battle raid.

Bosses, team abilities, counterattacks (the penalty drawn on a wrong answer) and
the damage dealt per question difficulty.  Everything is bundled into an immutable
CombatTables object so resolvers can be handed a custom catalog in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class BossDef:
    boss_id: str
    name: str
    icon: str
    base_hp: int
    description: str = ""


@dataclass(frozen=True)
class AbilityDef:
    ability_id: str
    name: str
    icon: str
    description: str
    # Questions a team must answer before re-arming (shield / critical hit)
    cooldown_questions: int | None = None
    # Paid from the class mana pool rather than the battle record (hint)
    mana_cost: int | None = None


@dataclass(frozen=True)
class CounterattackDef:
    counterattack_id: str
    name: str
    icon: str
    description: str
    class_damage: int = 1
    boss_heal: int | None = None


BOSSES: tuple[BossDef, ...] = (
    BossDef("dragon", "The Review Dragon", "🐉", 10,
            "A fearsome dragon that guards the knowledge vault"),
    BossDef("golem", "The Quiz Golem", "🗿", 12,
            "An ancient stone construct powered by unanswered questions"),
    BossDef("hydra", "The Concept Hydra", "🐍", 8,
            "Cut one head, two more grow unless you answer correctly"),
    BossDef("phantom", "The Exam Phantom", "👻", 10,
            "A ghostly specter that feeds on test anxiety"),
    BossDef("kraken", "The Knowledge Kraken", "🦑", 14,
            "Lurks in the deep, grasping at half-remembered facts"),
    BossDef("chimera", "The Final Chimera", "🦁", 16,
            "Part lion, part eagle, part serpent, all challenge"),
)

ABILITIES: Mapping[str, AbilityDef] = MappingProxyType({
    "hint": AbilityDef(
        ability_id="hint",
        name="Hint",
        icon="💡",
        description="Spend 5 mana to eliminate one wrong answer",
        mana_cost=5,
    ),
    "shield": AbilityDef(
        ability_id="shield",
        name="Shield",
        icon="🛡️",
        description="Block damage to class HP on your next wrong answer",
        cooldown_questions=3,
    ),
    "critical_hit": AbilityDef(
        ability_id="critical_hit",
        name="Critical Hit",
        icon="⚔️",
        description="Double damage on your next correct answer",
        cooldown_questions=4,
    ),
})

COUNTERATTACKS: tuple[CounterattackDef, ...] = (
    CounterattackDef("time-drain", "Time Drain", "⏳",
                     "Your next answer timer is shorter", class_damage=1),
    CounterattackDef("confusion", "Confusion", "😵",
                     "Options shuffled on your next question", class_damage=1),
    CounterattackDef("rage", "Boss Rage", "💢",
                     "Boss heals 1 HP", class_damage=1, boss_heal=1),
    CounterattackDef("poison", "Poison", "☠️",
                     "Class takes extra damage", class_damage=2),
)

DAMAGE_BY_DIFFICULTY: Mapping[str, int] = MappingProxyType({
    "easy": 1,
    "normal": 2,
    "hard": 3,
})
DEFAULT_DAMAGE = 2


@dataclass(frozen=True)
class CombatTables:
    """Immutable bundle of every catalog the resolvers read."""

    bosses: tuple[BossDef, ...] = BOSSES
    abilities: Mapping[str, AbilityDef] = field(default_factory=lambda: ABILITIES)
    counterattacks: tuple[CounterattackDef, ...] = COUNTERATTACKS
    damage_by_difficulty: Mapping[str, int] = field(
        default_factory=lambda: DAMAGE_BY_DIFFICULTY
    )
    default_damage: int = DEFAULT_DAMAGE

    def get_boss(self, boss_id: str | None) -> BossDef:
        """Return the boss with *boss_id*, falling back to the first catalog entry."""
        for boss in self.bosses:
            if boss.boss_id == boss_id:
                return boss
        return self.bosses[0]

    def base_damage(self, difficulty: str | None = "normal") -> int:
        return self.damage_by_difficulty.get(difficulty or "normal", self.default_damage)


DEFAULT_TABLES = CombatTables()
