"""Turns lesson content into battle questions (multiple-choice blocks only)."""

from typing import Any


def _is_multiple_choice(block: dict[str, Any]) -> bool:
    if block.get("type") != "question":
        return False
    if block.get("question_type") == "multiple_choice":
        return True
    options = block.get("options")
    return isinstance(options, list) and len(options) >= 2 and block.get("correct_index") is not None


def extract_questions_from_lesson(lesson: dict[str, Any]) -> list[dict[str, Any]]:
    source = lesson.get("title") or ""
    questions = []
    for block in lesson.get("blocks") or []:
        if not _is_multiple_choice(block):
            continue
        correct_index = block.get("correct_index")
        questions.append({
            "prompt": block.get("prompt") or "",
            "options": list(block.get("options") or []),
            "correct_index": 0 if correct_index is None else correct_index,
            "explanation": block.get("explanation") or "",
            "difficulty": "normal",
            "source": source,
        })
    return questions
