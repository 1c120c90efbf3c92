# backend/crease/routers/matches.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Match, Player
from ..schemas import (
    AwardIn,
    BallEventIn,
    BallEventOut,
    BallRecordedOut,
    BatsmanSelect,
    BowlerSelect,
    InningsStart,
    LiveStateOut,
    MatchComplete,
    MatchCreate,
    MatchIdOut,
    MatchOut,
    MatchStart,
    MatchStatsOut,
    MatchStatus,
    MatchUpdate,
    SettingsIn,
    UndoOut,
)
from ..scoring import cricket
from ..services import controller, event_store
from ..services.undo import undo
from .auth import Principal, limiter, require_scorer, scoring_rate_limit

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


@router.get("", response_model=list[MatchOut])
async def list_matches(
    status: Optional[MatchStatus] = None,
    tournamentId: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    stmt = select(Match).where(Match.deleted_at.is_(None))
    if status:
        stmt = stmt.where(Match.status == status)
    if tournamentId:
        stmt = stmt.where(Match.tournament_id == tournamentId)
    stmt = stmt.order_by(Match.start_time.desc().nullsfirst(), Match.created_at.desc())
    rows = (await session.execute(stmt.offset(offset).limit(limit))).scalars().all()
    return [MatchOut.model_validate(m) for m in rows]


async def create_match(body: MatchCreate, session: AsyncSession) -> MatchIdOut:
    match = await controller.create_match(
        session,
        team_a_id=body.team_a_id,
        team_b_id=body.team_b_id,
        overs=body.overs,
        tournament_id=body.tournament_id,
        start_time=body.start_time,
        rebowl_wide_or_no_ball=body.rebowl_wide_or_no_ball,
    )
    return MatchIdOut(id=match.id)


@router.post("", response_model=MatchIdOut)
@limiter.limit(scoring_rate_limit)
async def create_match_route(
    request: Request,
    body: MatchCreate,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
) -> MatchIdOut:
    return await create_match(body, session)


@router.get("/{mid}", response_model=MatchOut)
async def get_match(mid: str, session: AsyncSession = Depends(get_session)):
    return MatchOut.model_validate(await controller.get_match(session, mid))


# DELETE /api/v0/matches/{mid}
@router.delete("/{mid}", status_code=204)
@limiter.limit(scoring_rate_limit)
async def delete_match(
    request: Request,
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    await controller.delete_match(session, mid)
    return Response(status_code=204)


@router.patch("/{mid}", response_model=MatchOut)
@limiter.limit(scoring_rate_limit)
async def update_match_route(
    request: Request,
    mid: str,
    body: MatchUpdate,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    match = await controller.update_match(
        session, mid, body.model_dump(exclude_unset=True)
    )
    return MatchOut.model_validate(match)


@router.post("/{mid}/start", response_model=LiveStateOut)
@limiter.limit(scoring_rate_limit)
async def start_match_route(
    request: Request,
    mid: str,
    body: MatchStart,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    return await controller.start_match(
        session,
        mid,
        toss_winner_id=body.toss_winner_id,
        toss_decision=body.toss_decision,
        striker_id=body.striker_id,
        non_striker_id=body.non_striker_id,
        bowler_id=body.bowler_id,
    )


async def record_ball(mid: str, body: BallEventIn, session: AsyncSession) -> BallRecordedOut:
    event, state = await controller.record_ball(session, mid, body.model_dump())
    return BallRecordedOut(event=event, state=state)


@router.post("/{mid}/balls", response_model=BallRecordedOut)
@limiter.limit(scoring_rate_limit)
async def record_ball_route(
    request: Request,
    mid: str,
    body: BallEventIn,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
) -> BallRecordedOut:
    return await record_ball(mid, body, session)


@router.delete("/{mid}/balls/last", response_model=UndoOut)
@limiter.limit(scoring_rate_limit)
async def undo_last_ball_route(
    request: Request,
    mid: str,
    restorePointers: bool = False,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    removed, state = await undo(session, mid, restore_pointers=restorePointers)
    return UndoOut(removed=removed, state=state)


@router.post("/{mid}/bowler", response_model=LiveStateOut)
@limiter.limit(scoring_rate_limit)
async def select_bowler_route(
    request: Request,
    mid: str,
    body: BowlerSelect,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    return await controller.select_bowler(session, mid, body.bowler_id)


@router.post("/{mid}/batsman", response_model=LiveStateOut)
@limiter.limit(scoring_rate_limit)
async def select_batsman_route(
    request: Request,
    mid: str,
    body: BatsmanSelect,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    return await controller.select_batsman(session, mid, body.player_id)


@router.post("/{mid}/innings", response_model=LiveStateOut)
@limiter.limit(scoring_rate_limit)
async def start_next_innings_route(
    request: Request,
    mid: str,
    body: InningsStart,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    return await controller.start_next_innings(
        session,
        mid,
        striker_id=body.striker_id,
        non_striker_id=body.non_striker_id,
        bowler_id=body.bowler_id,
    )


@router.post("/{mid}/complete", response_model=MatchOut)
@limiter.limit(scoring_rate_limit)
async def complete_match_route(
    request: Request,
    mid: str,
    body: MatchComplete,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    match = await controller.complete_match(
        session,
        mid,
        winning_team_id=body.winning_team_id,
        man_of_the_match_id=body.man_of_the_match_id,
        result_description=body.result_description,
    )
    return MatchOut.model_validate(match)


@router.put("/{mid}/awards", response_model=MatchOut)
@limiter.limit(scoring_rate_limit)
async def set_awards_route(
    request: Request,
    mid: str,
    body: AwardIn,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    match = await controller.set_man_of_the_match(
        session, mid, body.man_of_the_match_id
    )
    return MatchOut.model_validate(match)


@router.put("/{mid}/settings", response_model=MatchOut)
@limiter.limit(scoring_rate_limit)
async def update_settings_route(
    request: Request,
    mid: str,
    body: SettingsIn,
    session: AsyncSession = Depends(get_session),
    user: Principal = Depends(require_scorer),
):
    match = await controller.update_settings(
        session, mid, rebowl_wide_or_no_ball=body.rebowl_wide_or_no_ball
    )
    return MatchOut.model_validate(match)


@router.get("/{mid}/live", response_model=LiveStateOut)
async def live_state(mid: str, session: AsyncSession = Depends(get_session)):
    return await controller.get_live_state(session, mid)


@router.get("/{mid}/events", response_model=list[BallEventOut])
async def list_events(
    mid: str,
    innings: Optional[int] = Query(None, ge=1, le=2),
    session: AsyncSession = Depends(get_session),
):
    await controller.get_match(session, mid)
    if innings is None:
        rows = await event_store.list_for_match(session, mid)
    else:
        rows = await event_store.list_for_innings(session, mid, innings)
    return [event_store.event_payload(row) for row in rows]


@router.get("/{mid}/stats", response_model=MatchStatsOut)
async def match_stats(mid: str, session: AsyncSession = Depends(get_session)):
    match = await controller.get_match(session, mid)
    rows = await event_store.list_for_match(session, mid)
    cards = cricket.scorecard(event_store.event_payload(row) for row in rows)

    player_ids = {
        entry["player_id"]
        for card in cards
        for entry in (*card["batting"], *card["bowling"])
    }
    names: dict[str, str] = {}
    if player_ids:
        players = (
            await session.execute(select(Player).where(Player.id.in_(player_ids)))
        ).scalars().all()
        names = {p.id: p.name for p in players}
    for card in cards:
        for entry in (*card["batting"], *card["bowling"]):
            entry["name"] = names.get(entry["player_id"])

    return MatchStatsOut(
        match_id=match.id,
        man_of_the_match_id=match.man_of_the_match_id,
        innings=cards,
    )
