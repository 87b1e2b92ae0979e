"""Boss Battle router: raid creation, answers, abilities, lifecycle and live stream."""

import asyncio
import json
import random

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.data.combat_tables import CombatTables
from app.database import get_db
from app.dependencies import get_battle_events, get_combat_tables, get_rng
from app.schemas.boss_battle import (
    AbilityResponse,
    AbilityUse,
    AnswerResponse,
    AnswerSubmit,
    BattleCreate,
    BattleResponse,
    EndBattle,
)
from app.services.ability_resolver import HINT_ABILITY_ID, use_ability, use_hint
from app.services.answer_resolver import submit_answer
from app.services.battle_events import BattleBroadcaster
from app.services.battle_factory import create_battle
from app.services.battle_service import delete_battle, end_battle, get_battle, list_battles
from app.services.battle_transactions import TransactionConflictError

router = APIRouter(prefix="/courses/{course_id}/boss-battles", tags=["boss-battles"])

# Catalog is not course-scoped
catalog_router = APIRouter(prefix="/boss-battles", tags=["boss-battles"])


@catalog_router.get("/catalog")
async def get_catalog(tables: CombatTables = Depends(get_combat_tables)):
    """Return the bosses, abilities and counterattacks battles are built from."""
    return {
        "bosses": [
            {
                "id": b.boss_id,
                "name": b.name,
                "icon": b.icon,
                "base_hp": b.base_hp,
                "description": b.description,
            }
            for b in tables.bosses
        ],
        "abilities": [
            {
                "id": a.ability_id,
                "name": a.name,
                "icon": a.icon,
                "description": a.description,
                "cooldown_questions": a.cooldown_questions,
                "mana_cost": a.mana_cost,
            }
            for a in tables.abilities.values()
        ],
        "counterattacks": [
            {
                "id": c.counterattack_id,
                "name": c.name,
                "icon": c.icon,
                "description": c.description,
                "class_damage": c.class_damage,
                "boss_heal": c.boss_heal,
            }
            for c in tables.counterattacks
        ],
    }


@router.post("", response_model=BattleResponse, status_code=status.HTTP_201_CREATED)
async def create_battle_endpoint(
    course_id: str,
    body: BattleCreate,
    db: AsyncSession = Depends(get_db),
    tables: CombatTables = Depends(get_combat_tables),
    rng: random.Random | None = Depends(get_rng),
    events: BattleBroadcaster = Depends(get_battle_events),
):
    battle = await create_battle(
        db,
        course_id,
        body.boss_id,
        [q.model_dump() for q in body.questions],
        [t.id for t in body.teams],
        team_names=[t.name for t in body.teams],
        team_colors=[t.color for t in body.teams],
        avg_team_size=body.avg_team_size,
        tables=tables,
        rng=rng,
        events=events,
    )
    return battle.to_snapshot()


@router.get("", response_model=list[BattleResponse])
async def list_battles_endpoint(course_id: str, db: AsyncSession = Depends(get_db)):
    """Return all battles of the course, newest first."""
    return [b.to_snapshot() for b in await list_battles(db, course_id)]


@router.get("/{battle_id}", response_model=BattleResponse)
async def get_battle_endpoint(
    course_id: str, battle_id: str, db: AsyncSession = Depends(get_db)
):
    battle = await get_battle(db, course_id, battle_id)
    if battle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Battle not found")
    return battle.to_snapshot()


@router.post("/{battle_id}/answer", response_model=AnswerResponse)
async def submit_answer_endpoint(
    course_id: str,
    battle_id: str,
    body: AnswerSubmit,
    db: AsyncSession = Depends(get_db),
    tables: CombatTables = Depends(get_combat_tables),
    rng: random.Random | None = Depends(get_rng),
    events: BattleBroadcaster = Depends(get_battle_events),
):
    """Resolve one team answer.

    Late or duplicate submissions are not errors: they come back with result null.
    """
    try:
        outcome = await submit_answer(
            db, course_id, battle_id, body.team_id, body.answer_index,
            tables=tables, rng=rng, events=events,
        )
    except TransactionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return {
        "result": outcome.result.to_dict() if outcome.result else None,
        "battle": outcome.battle.to_snapshot() if outcome.battle else None,
    }


@router.post("/{battle_id}/abilities", response_model=AbilityResponse)
async def use_ability_endpoint(
    course_id: str,
    battle_id: str,
    body: AbilityUse,
    db: AsyncSession = Depends(get_db),
    tables: CombatTables = Depends(get_combat_tables),
    rng: random.Random | None = Depends(get_rng),
    events: BattleBroadcaster = Depends(get_battle_events),
):
    """Arm a shield or critical hit, or buy a hint with class mana.

    Rejections (cooldown, already active, no mana...) are returned in ``error``.
    """
    if body.ability_id == HINT_ABILITY_ID:
        hint = await use_hint(
            db, course_id, battle_id, body.team_id,
            already_eliminated=body.eliminated_option, question_index=body.question_index,
            tables=tables, rng=rng,
        )
        return {"error": hint.error, "eliminated_option": hint.eliminated_option}

    try:
        outcome = await use_ability(
            db, course_id, battle_id, body.team_id, body.ability_id,
            tables=tables, events=events,
        )
    except TransactionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return {"error": outcome.error}


@router.post("/{battle_id}/end", response_model=BattleResponse)
async def end_battle_endpoint(
    course_id: str,
    battle_id: str,
    body: EndBattle,
    db: AsyncSession = Depends(get_db),
    events: BattleBroadcaster = Depends(get_battle_events),
):
    """Instructor override: end an active battle as victory or defeat."""
    battle = await end_battle(db, course_id, battle_id, body.status, events=events)
    if battle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Battle not found")
    return battle.to_snapshot()


@router.delete("/{battle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_battle_endpoint(
    course_id: str,
    battle_id: str,
    db: AsyncSession = Depends(get_db),
    events: BattleBroadcaster = Depends(get_battle_events),
):
    deleted = await delete_battle(db, course_id, battle_id, events=events)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Battle not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{battle_id}/stream")
async def stream_battle_endpoint(
    course_id: str,
    battle_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    events: BattleBroadcaster = Depends(get_battle_events),
):
    """Server-Sent Events stream of full battle snapshots.

    Sends the current snapshot first, then one frame per committed change.  Ends
    once the battle is over or the client disconnects.
    """
    # Subscribe before reading so a commit landing in between is still queued
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = events.subscribe(battle_id, queue.put_nowait)
    battle = await get_battle(db, course_id, battle_id)
    if battle is None:
        unsubscribe()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Battle not found")
    initial = battle.to_snapshot()

    async def event_generator():
        try:
            yield f"data: {json.dumps(initial)}\n\n"
            if initial["status"] != "active":
                return
            last_version = initial["version"]
            while True:
                if await request.is_disconnected():
                    break
                try:
                    snapshot = await asyncio.wait_for(
                        queue.get(), timeout=settings.stream_keepalive_seconds
                    )
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                # Already covered by an earlier frame
                if snapshot["version"] <= last_version:
                    continue
                last_version = snapshot["version"]
                yield f"data: {json.dumps(snapshot)}\n\n"
                if snapshot["status"] != "active":
                    break
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
