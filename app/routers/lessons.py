"""Lesson adapter router: turns lesson content into battle questions."""

from fastapi import APIRouter

from app.schemas.boss_battle import LessonIn, QuestionResponse
from app.services.question_extraction import extract_questions_from_lesson

router = APIRouter(prefix="/lessons", tags=["lessons"])


@router.post("/extract-questions", response_model=list[QuestionResponse])
async def extract_questions_endpoint(body: LessonIn):
    """Return the lesson's multiple-choice blocks in battle question form."""
    return extract_questions_from_lesson(body.model_dump())
