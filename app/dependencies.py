"""Injectable collaborators for the battle endpoints.

Tests override these through app.dependency_overrides to pin the random source
or swap in custom combat tables.
"""

import random

from app.data.combat_tables import DEFAULT_TABLES, CombatTables
from app.services.battle_events import BattleBroadcaster, battle_events


def get_combat_tables() -> CombatTables:
    return DEFAULT_TABLES


def get_rng() -> random.Random | None:
    # None means the module-level random source
    return None


def get_battle_events() -> BattleBroadcaster:
    return battle_events
