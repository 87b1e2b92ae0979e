"""Tests for battle lifecycle, change notification and write hygiene.

Covers:
- get_battle / list_battles: course scoping, newest first
- end_battle: forced victory/defeat, version bump, terminal battles untouched,
  missing battle, refusing 'active'
- delete_battle: removes the row and drops subscribers
- BattleBroadcaster: subscribe/unsubscribe, failing callbacks isolated
- sanitize: recursive None stripping from dicts, list positions preserved
- extract_questions_from_lesson: multiple-choice blocks only
"""

import asyncio
import random

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.boss_battle import BattleStatus
from app.services.battle_events import BattleBroadcaster
from app.services.battle_factory import create_battle
from app.services.battle_service import delete_battle, end_battle, get_battle, list_battles
from app.services.question_extraction import extract_questions_from_lesson
from app.services.sanitize import sanitize


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

QUESTIONS = [
    {"prompt": f"Q{i}", "options": ["a", "b", "c"], "correct_index": 0} for i in range(3)
]


async def _create(db: AsyncSession, course_id: str = "c1", events: BattleBroadcaster | None = None):
    return await create_battle(
        db, course_id, "dragon", QUESTIONS, ["t1", "t2"],
        rng=random.Random(0), events=events or BattleBroadcaster(),
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestReads:
    async def test_get_battle(self, db_session: AsyncSession):
        battle = await _create(db_session)
        loaded = await get_battle(db_session, "c1", battle.id)
        assert loaded.id == battle.id
        assert loaded.to_snapshot()["team_progress"] == battle.to_snapshot()["team_progress"]

    async def test_get_battle_other_course(self, db_session: AsyncSession):
        battle = await _create(db_session)
        assert await get_battle(db_session, "c2", battle.id) is None

    async def test_list_newest_first_and_scoped(self, db_session: AsyncSession):
        first = await _create(db_session)
        await asyncio.sleep(0.01)
        second = await _create(db_session)
        await _create(db_session, course_id="c2")

        battles = await list_battles(db_session, "c1")

        assert [b.id for b in battles] == [second.id, first.id]

    async def test_list_empty(self, db_session: AsyncSession):
        assert await list_battles(db_session, "nobody") == []


# ---------------------------------------------------------------------------
# Forced end
# ---------------------------------------------------------------------------

class TestEndBattle:
    async def test_force_defeat(self, db_session: AsyncSession):
        battle = await _create(db_session)
        events = BattleBroadcaster()
        seen = []
        events.subscribe(battle.id, seen.append)

        ended = await end_battle(db_session, "c1", battle.id, events=events)

        assert ended.status == BattleStatus.defeat
        assert ended.version == 2
        assert ended.boss.current_hp == battle.boss.current_hp
        assert seen[0]["status"] == "defeat"

    async def test_force_victory(self, db_session: AsyncSession):
        battle = await _create(db_session)
        ended = await end_battle(db_session, "c1", battle.id, BattleStatus.victory, events=BattleBroadcaster())
        assert ended.status == BattleStatus.victory

    async def test_already_ended_is_unchanged(self, db_session: AsyncSession):
        battle = await _create(db_session)
        await end_battle(db_session, "c1", battle.id, BattleStatus.victory, events=BattleBroadcaster())
        events = BattleBroadcaster()
        seen = []
        events.subscribe(battle.id, seen.append)

        again = await end_battle(db_session, "c1", battle.id, BattleStatus.defeat, events=events)

        assert again.status == BattleStatus.victory
        assert again.version == 2
        assert seen == []

    async def test_missing_battle(self, db_session: AsyncSession):
        assert await end_battle(db_session, "c1", "battle-nope") is None

    async def test_cannot_force_active(self, db_session: AsyncSession):
        battle = await _create(db_session)
        with pytest.raises(ValueError):
            await end_battle(db_session, "c1", battle.id, BattleStatus.active)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

class TestDeleteBattle:
    async def test_delete(self, db_session: AsyncSession):
        events = BattleBroadcaster()
        battle = await _create(db_session, events=events)
        events.subscribe(battle.id, lambda snapshot: None)

        assert await delete_battle(db_session, "c1", battle.id, events=events) is True
        assert await get_battle(db_session, "c1", battle.id) is None
        assert events.subscriber_count(battle.id) == 0

    async def test_delete_missing(self, db_session: AsyncSession):
        assert await delete_battle(db_session, "c1", "battle-nope") is False

    async def test_delete_other_course(self, db_session: AsyncSession):
        battle = await _create(db_session)
        assert await delete_battle(db_session, "c2", battle.id) is False
        assert await get_battle(db_session, "c1", battle.id) is not None


# ---------------------------------------------------------------------------
# Change notification
# ---------------------------------------------------------------------------

class TestBroadcaster:
    def test_publish_reaches_only_that_battle(self):
        events = BattleBroadcaster()
        a, b = [], []
        events.subscribe("battle-a", a.append)
        events.subscribe("battle-b", b.append)

        events.publish("battle-a", {"status": "active"})

        assert a == [{"status": "active"}]
        assert b == []

    def test_unsubscribe(self):
        events = BattleBroadcaster()
        seen = []
        unsubscribe = events.subscribe("battle-a", seen.append)
        unsubscribe()
        unsubscribe()
        events.publish("battle-a", {"status": "active"})
        assert seen == []
        assert events.subscriber_count("battle-a") == 0

    def test_failing_callback_is_isolated(self, caplog):
        events = BattleBroadcaster()
        seen = []

        def broken(snapshot):
            raise RuntimeError("render crashed")

        events.subscribe("battle-a", broken)
        events.subscribe("battle-a", seen.append)

        events.publish("battle-a", {"status": "victory"})

        assert seen == [{"status": "victory"}]
        assert "Subscriber callback failed" in caplog.text

    def test_close_drops_subscribers(self):
        events = BattleBroadcaster()
        seen = []
        events.subscribe("battle-a", seen.append)
        events.close("battle-a")
        events.publish("battle-a", {})
        assert seen == []


# ---------------------------------------------------------------------------
# Write hygiene
# ---------------------------------------------------------------------------

class TestSanitize:
    def test_strips_none_recursively(self):
        data = {
            "a": 1,
            "b": None,
            "nested": {"c": None, "d": [1, None, {"e": None, "f": 2}]},
        }
        assert sanitize(data) == {"a": 1, "nested": {"d": [1, None, {"f": 2}]}}

    def test_list_positions_are_kept(self):
        question = {"options": ["a", None, "c"], "correct_index": 2, "explanation": None}
        cleaned = sanitize(question)
        assert cleaned == {"options": ["a", None, "c"], "correct_index": 2}
        assert cleaned["options"][cleaned["correct_index"]] == "c"

    def test_tuples_become_lists(self):
        assert sanitize({"t": (1, None)}) == {"t": [1, None]}

    def test_keeps_falsy_values(self):
        assert sanitize({"zero": 0, "empty": "", "no": False, "list": []}) == {
            "zero": 0, "empty": "", "no": False, "list": [],
        }

    def test_scalars_pass_through(self):
        assert sanitize(5) == 5
        assert sanitize("x") == "x"


# ---------------------------------------------------------------------------
# Lesson adapter
# ---------------------------------------------------------------------------

class TestQuestionExtraction:
    def test_extracts_multiple_choice_blocks(self):
        lesson = {
            "title": "Forces",
            "blocks": [
                {"type": "text", "content": "Intro"},
                {
                    "type": "question",
                    "question_type": "multiple_choice",
                    "prompt": "Unit of force?",
                    "options": ["N", "J"],
                    "correct_index": 0,
                    "explanation": "Newton",
                },
                {"type": "question", "question_type": "short_answer", "prompt": "Explain"},
                {"type": "question", "prompt": "Implicit MC", "options": ["x", "y", "z"], "correct_index": 2},
                {"type": "question", "prompt": "One option", "options": ["x"], "correct_index": 0},
            ],
        }

        questions = extract_questions_from_lesson(lesson)

        assert [q["prompt"] for q in questions] == ["Unit of force?", "Implicit MC"]
        assert questions[0] == {
            "prompt": "Unit of force?",
            "options": ["N", "J"],
            "correct_index": 0,
            "explanation": "Newton",
            "difficulty": "normal",
            "source": "Forces",
        }
        assert questions[1]["correct_index"] == 2

    def test_multiple_choice_without_options_gets_defaults(self):
        lesson = {"blocks": [{"type": "question", "question_type": "multiple_choice"}]}
        assert extract_questions_from_lesson(lesson) == [{
            "prompt": "",
            "options": [],
            "correct_index": 0,
            "explanation": "",
            "difficulty": "normal",
            "source": "",
        }]

    def test_empty_lesson(self):
        assert extract_questions_from_lesson({}) == []
