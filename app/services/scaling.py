"""HP ceilings for a raid, scaled by how many students are taking part."""

import math

BOSS_HP_PER_STUDENT = 1.5
CLASS_HP_PER_STUDENT = 1.2
MIN_CLASS_HP = 10


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_boss_hp(base_hp: int, team_count: int, avg_team_size: int = 4) -> int:
    """max(base_hp, round(team_count * avg_team_size * 1.5))."""
    total_students = team_count * avg_team_size
    return max(base_hp, _round_half_up(total_students * BOSS_HP_PER_STUDENT))


def calculate_class_hp(team_count: int, avg_team_size: int = 4) -> int:
    """max(10, round(team_count * avg_team_size * 1.2))."""
    total_students = team_count * avg_team_size
    return max(MIN_CLASS_HP, _round_half_up(total_students * CLASS_HP_PER_STUDENT))
