"""Match controller: the only writer of match status and control pointers.

Every mutation for a match runs under that match's lock, validates before it
writes, commits, invalidates cached live state and then broadcasts a
"changed" signal. Different matches never wait on each other.
"""

import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from ..cache import live_state_cache
from ..config import DEFAULT_REBOWL_WIDE_OR_NO_BALL
from ..exceptions import (
    DomainException,
    InningsOverError,
    InvalidMatchSetupError,
    InvalidStatusTransitionError,
    MatchConflictError,
    MatchNotFound,
    StaleDeliveryError,
    TeamNotFound,
)
from ..models import Match, Team, Tournament
from ..scoring import control as rules
from ..scoring import cricket
from ..scoring.control import MatchControl
from . import broadcast, event_store
from .roster import MatchRosters, match_rosters, other_team
from .validation import (
    batting_team_from_toss,
    require_live,
    validate_award,
    validate_batsman_selection,
    validate_batting_pair,
    validate_bowler_selection,
    validate_delivery,
    validate_openers,
    validate_result,
    validate_status_transition,
    validate_toss,
)

logger = logging.getLogger(__name__)

_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def match_lock(mid: str) -> asyncio.Lock:
    """The lock serialising writes to ``mid`` within this process."""

    lock = _locks.get(mid)
    if lock is None:
        lock = asyncio.Lock()
        _locks[mid] = lock
    return lock


@asynccontextmanager
async def mutation(session: AsyncSession, mid: str):
    """Run a match mutation atomically, then notify subscribers.

    Nothing is broadcast when the body raises; the session is rolled back and
    the error propagates to the caller.
    """

    async with match_lock(mid):
        try:
            yield
            await session.commit()
        except DomainException as exc:
            await session.rollback()
            logger.info("Rejected change to match %s: %s (%s)", mid, exc.code, exc.detail)
            raise
        except (StaleDataError, IntegrityError) as exc:
            await session.rollback()
            logger.info("Concurrent write to match %s rejected", mid)
            raise MatchConflictError(mid) from exc
        except Exception:
            await session.rollback()
            raise
    await live_state_cache.invalidate_match(mid)
    await broadcast.notify_changed(mid)


async def get_match(session: AsyncSession, mid: str) -> Match:
    match = (
        await session.execute(
            select(Match).where(Match.id == mid, Match.deleted_at.is_(None))
        )
    ).scalar_one_or_none()
    if match is None:
        raise MatchNotFound(mid)
    return match


async def load_for_update(session: AsyncSession, mid: str) -> Match:
    """Load ``mid`` fresh from the database, discarding any cached copy."""

    match = (
        await session.execute(
            select(Match)
            .where(Match.id == mid, Match.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if match is None:
        raise MatchNotFound(mid)
    return match


def save_control(match: Match, control: MatchControl) -> None:
    """Persist ``control`` and force a version bump even if nothing moved."""

    rules.write_to_match(control, match)
    flag_modified(match, "current_innings")


def _engine_config(match: Match, innings: int) -> dict:
    return {"overs": match.overs, "innings": innings}


async def innings_state(
    session: AsyncSession, match: Match, innings: int
) -> tuple[list[dict], dict]:
    rows = await event_store.list_for_innings(session, match.id, innings)
    events = [event_store.event_payload(row) for row in rows]
    return events, cricket.replay(events, _engine_config(match, innings))


def live_payload(
    match: Match,
    control: MatchControl,
    state: dict,
    rosters: Optional[MatchRosters] = None,
) -> dict[str, Any]:
    """Authoritative live view: engine summary plus match and control fields."""

    summary = cricket.summary(state, control.pointers())
    all_out = bool(rosters) and rules.is_all_out(state["wickets"], len(rosters.batting))
    overs_done = bool(match.overs) and state["valid_balls"] >= match.overs * cricket.BALLS_PER_OVER
    return {
        "match_id": match.id,
        "status": match.status,
        "version": match.control_version or 0,
        "batting_team_id": control.batting_team_id,
        "bowling_team_id": other_team(match, control.batting_team_id)
        if control.batting_team_id
        else None,
        "striker_id": control.striker_id,
        "non_striker_id": control.non_striker_id,
        "bowler_id": control.bowler_id,
        "awaiting_bowler": control.awaiting_bowler,
        "awaiting_batsman": control.awaiting_batsman,
        "rebowl_wide_or_no_ball": bool(match.rebowl_wide_or_no_ball),
        "all_out": all_out,
        "innings_complete": all_out or overs_done,
        **summary,
    }


async def get_live_state(session: AsyncSession, mid: str) -> dict[str, Any]:
    match = await get_match(session, mid)
    key = (mid, match.control_version or 0)
    cached = await live_state_cache.get(key)
    if cached is not None:
        return cached

    control = MatchControl.from_match(match)
    _, state = await innings_state(session, match, control.innings)
    rosters = None
    if control.batting_team_id:
        rosters = await match_rosters(session, match, control.batting_team_id)
    payload = live_payload(match, control, state, rosters)
    await live_state_cache.set(key, payload)
    return payload


# -----------------------------------------------------------------------------
# Match lifecycle
# -----------------------------------------------------------------------------
async def create_match(
    session: AsyncSession,
    *,
    team_a_id: str,
    team_b_id: str,
    overs: Optional[int] = None,
    tournament_id: Optional[str] = None,
    start_time: Optional[datetime] = None,
    rebowl_wide_or_no_ball: Optional[bool] = None,
) -> Match:
    if team_a_id == team_b_id:
        raise InvalidMatchSetupError("a match needs two different teams")
    for team_id in (team_a_id, team_b_id):
        if await session.get(Team, team_id) is None:
            raise TeamNotFound(team_id)
    if tournament_id and await session.get(Tournament, tournament_id) is None:
        raise InvalidMatchSetupError(f"tournament '{tournament_id}' not found")
    if overs is not None and overs < 1:
        raise InvalidMatchSetupError("overs limit must be at least 1")
    if start_time is not None and start_time.tzinfo is not None:
        start_time = start_time.astimezone(timezone.utc).replace(tzinfo=None)

    match = Match(
        id=uuid.uuid4().hex,
        tournament_id=tournament_id,
        team_a_id=team_a_id,
        team_b_id=team_b_id,
        overs=overs,
        start_time=start_time,
        status="SCHEDULED",
        current_innings=1,
        awaiting_bowler=False,
        awaiting_batsman=False,
        is_completed=False,
        rebowl_wide_or_no_ball=(
            DEFAULT_REBOWL_WIDE_OR_NO_BALL
            if rebowl_wide_or_no_ball is None
            else rebowl_wide_or_no_ball
        ),
    )
    session.add(match)
    await session.commit()
    logger.info("Created match %s: %s vs %s", match.id, team_a_id, team_b_id)
    return match


async def _open_innings(
    session: AsyncSession,
    match: Match,
    control: MatchControl,
    *,
    innings: int,
    batting_team_id: str,
    striker_id: Optional[str],
    non_striker_id: Optional[str],
    bowler_id: Optional[str],
) -> MatchControl:
    rosters = await match_rosters(session, match, batting_team_id)
    validate_openers(striker_id, non_striker_id, bowler_id, rosters)
    return rules.for_new_innings(
        control,
        innings=innings,
        batting_team_id=batting_team_id,
        striker_id=striker_id,
        non_striker_id=non_striker_id,
        bowler_id=bowler_id,
    )


async def start_match(
    session: AsyncSession,
    mid: str,
    *,
    toss_winner_id: str,
    toss_decision: str,
    striker_id: str,
    non_striker_id: str,
    bowler_id: str,
) -> dict[str, Any]:
    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        if match.status != "SCHEDULED":
            raise InvalidStatusTransitionError(match.status, "LIVE")
        control = await _start(
            session,
            match,
            MatchControl.from_match(match),
            toss_winner_id=toss_winner_id,
            toss_decision=toss_decision,
            striker_id=striker_id,
            non_striker_id=non_striker_id,
            bowler_id=bowler_id,
        )
        save_control(match, control)
    logger.info("Match %s is live; %s batting first", mid, control.batting_team_id)
    return await get_live_state(session, mid)


async def _start(
    session: AsyncSession,
    match: Match,
    control: MatchControl,
    *,
    toss_winner_id: Optional[str],
    toss_decision: Optional[str],
    striker_id: Optional[str],
    non_striker_id: Optional[str],
    bowler_id: Optional[str],
) -> MatchControl:
    validate_toss(match, toss_winner_id, toss_decision)
    batting_team_id = batting_team_from_toss(match, toss_winner_id, toss_decision)
    control = await _open_innings(
        session,
        match,
        control,
        innings=1,
        batting_team_id=batting_team_id,
        striker_id=striker_id,
        non_striker_id=non_striker_id,
        bowler_id=bowler_id,
    )
    match.toss_winner_id = toss_winner_id
    match.toss_decision = toss_decision
    match.status = "LIVE"
    return control


async def start_next_innings(
    session: AsyncSession,
    mid: str,
    *,
    striker_id: str,
    non_striker_id: str,
    bowler_id: str,
) -> dict[str, Any]:
    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        control = await _next_innings(
            session,
            match,
            MatchControl.from_match(match),
            striker_id=striker_id,
            non_striker_id=non_striker_id,
            bowler_id=bowler_id,
        )
        save_control(match, control)
    logger.info("Match %s moved to innings %s", mid, control.innings)
    return await get_live_state(session, mid)


async def _next_innings(
    session: AsyncSession,
    match: Match,
    control: MatchControl,
    *,
    striker_id: Optional[str],
    non_striker_id: Optional[str],
    bowler_id: Optional[str],
    batting_team_id: Optional[str] = None,
) -> MatchControl:
    require_live(match)
    if control.innings >= 2:
        raise InvalidMatchSetupError("the second innings is already under way")
    expected_batting = other_team(match, control.batting_team_id)
    if batting_team_id is not None and batting_team_id != expected_batting:
        raise InvalidMatchSetupError(
            "the side that bowled the first innings bats in the second"
        )
    return await _open_innings(
        session,
        match,
        control,
        innings=control.innings + 1,
        batting_team_id=expected_batting,
        striker_id=striker_id,
        non_striker_id=non_striker_id,
        bowler_id=bowler_id,
    )


async def complete_match(
    session: AsyncSession,
    mid: str,
    *,
    winning_team_id: Optional[str] = None,
    man_of_the_match_id: Optional[str] = None,
    result_description: Optional[str] = None,
) -> Match:
    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        control = await _complete(
            session,
            match,
            MatchControl.from_match(match),
            winning_team_id=winning_team_id,
            man_of_the_match_id=man_of_the_match_id,
            result_description=result_description,
        )
        save_control(match, control)
    logger.info("Match %s completed; winner=%s", mid, winning_team_id or "none")
    return match


async def _complete(
    session: AsyncSession,
    match: Match,
    control: MatchControl,
    *,
    winning_team_id: Optional[str],
    man_of_the_match_id: Optional[str],
    result_description: Optional[str],
) -> MatchControl:
    if match.status != "LIVE":
        raise InvalidStatusTransitionError(match.status, "COMPLETED")
    rosters = await match_rosters(session, match)
    validate_result(match, winning_team_id, man_of_the_match_id, rosters)
    match.status = "COMPLETED"
    match.is_completed = True
    match.winning_team_id = winning_team_id
    if man_of_the_match_id is not None:
        match.man_of_the_match_id = man_of_the_match_id
    if result_description is not None:
        match.result_description = result_description
    return rules.discard_pending(control)


async def set_man_of_the_match(
    session: AsyncSession, mid: str, player_id: Optional[str]
) -> Match:
    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        if match.status == "SCHEDULED":
            raise InvalidMatchSetupError("awards are given once the match has started")
        validate_award(player_id, await match_rosters(session, match))
        match.man_of_the_match_id = player_id
        flag_modified(match, "man_of_the_match_id")
    return match


async def update_settings(
    session: AsyncSession, mid: str, *, rebowl_wide_or_no_ball: bool
) -> Match:
    """Change the re-bowl rule; already recorded deliveries keep their validity."""

    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        if match.status == "COMPLETED":
            raise InvalidMatchSetupError("settings cannot change after the match is completed")
        match.rebowl_wide_or_no_ball = rebowl_wide_or_no_ball
        flag_modified(match, "rebowl_wide_or_no_ball")
    return match


async def delete_match(session: AsyncSession, mid: str) -> None:
    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        match.deleted_at = datetime.now(timezone.utc).replace(tzinfo=None)


# -----------------------------------------------------------------------------
# Deliveries and selections
# -----------------------------------------------------------------------------
STALE_CHECK_FIELDS = (
    "match_id",
    "innings",
    "over_number",
    "ball_number",
    "striker_id",
    "non_striker_id",
    "bowler_id",
    "batting_team_id",
)


def _check_stale(payload: dict[str, Any], expected: dict[str, Any]) -> None:
    for field in STALE_CHECK_FIELDS:
        got = payload.get(field)
        if got is not None and got != expected[field]:
            raise StaleDeliveryError(field, expected[field], got)


async def record_ball(
    session: AsyncSession, mid: str, payload: dict[str, Any]
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Validate and append one delivery; returns ``(event, live_state)``."""

    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        control = MatchControl.from_match(match)
        rosters = await match_rosters(session, match, control.batting_team_id)
        _, state = await innings_state(session, match, control.innings)

        validate_delivery(match, control, state, rosters)

        over_number, ball_number = cricket.next_ball_position(state["valid_balls"])
        _check_stale(
            payload,
            {
                "match_id": mid,
                "innings": control.innings,
                "over_number": over_number,
                "ball_number": ball_number,
                "striker_id": control.striker_id,
                "non_striker_id": control.non_striker_id,
                "bowler_id": control.bowler_id,
                "batting_team_id": control.batting_team_id,
            },
        )

        extra_type = cricket.normalize_extra_type(payload.get("extra_type"))
        runs_scored = int(payload.get("runs_scored") or 0)
        extras = payload.get("extras")
        if extras is None:
            extras = cricket.default_extras(extra_type, runs_scored)
        event = {
            "match_id": mid,
            "innings": control.innings,
            "over_number": over_number,
            "ball_number": ball_number,
            "striker_id": control.striker_id,
            "non_striker_id": control.non_striker_id,
            "bowler_id": control.bowler_id,
            "batting_team_id": control.batting_team_id,
            "runs_scored": runs_scored,
            "is_wicket": bool(payload.get("is_wicket")),
            "wicket_type": payload.get("wicket_type"),
            "extras": int(extras),
            "extra_type": extra_type,
            "is_valid_ball": cricket.is_valid_ball(
                extra_type, bool(match.rebowl_wide_or_no_ball)
            ),
        }
        stored = await event_store.append(session, mid, event)
        state = cricket.apply(event, state)

        control = rules.after_delivery(
            control,
            event,
            valid_balls=state["valid_balls"],
            wickets=state["wickets"],
            roster_size=len(rosters.batting),
            overs_limit=match.overs,
        )
        save_control(match, control)

    logger.info(
        "Match %s innings %s: %s.%s %s -> %s/%s",
        mid,
        event["innings"],
        event["over_number"],
        event["ball_number"],
        cricket.ball_mark(event),
        state["score"],
        state["wickets"],
    )
    return event_store.event_payload(stored), live_payload(match, control, state, rosters)


async def select_bowler(session: AsyncSession, mid: str, bowler_id: str) -> dict[str, Any]:
    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        require_live(match)
        control = MatchControl.from_match(match)
        rosters = await match_rosters(session, match, control.batting_team_id)
        validate_bowler_selection(bowler_id, rosters)
        save_control(match, rules.with_bowler(control, bowler_id))
    return await get_live_state(session, mid)


async def _dismissed(session: AsyncSession, match: Match, innings: int) -> tuple[list[dict], set[str]]:
    events, _ = await innings_state(session, match, innings)
    return events, {e["striker_id"] for e in events if e.get("is_wicket")}


async def select_batsman(session: AsyncSession, mid: str, player_id: str) -> dict[str, Any]:
    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        require_live(match)
        control = MatchControl.from_match(match)
        rosters = await match_rosters(session, match, control.batting_team_id)
        events, dismissed = await _dismissed(session, match, control.innings)
        wickets = sum(1 for e in events if e.get("is_wicket"))
        if rules.is_all_out(wickets, len(rosters.batting)):
            raise InningsOverError(wickets)
        validate_batsman_selection(player_id, control, rosters, dismissed)
        save_control(match, rules.with_batsman(control, player_id))
    return await get_live_state(session, mid)


async def update_match(session: AsyncSession, mid: str, changes: dict[str, Any]) -> Match:
    """Apply a partial match update, routing every field through validation."""

    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        control = MatchControl.from_match(match)

        requested = "COMPLETED" if changes.get("is_completed") else changes.get("status")
        if requested is not None:
            validate_status_transition(match.status, requested)

        toss_changed = any(
            changes.get(field) is not None
            and changes.get(field) != getattr(match, field)
            for field in ("toss_winner_id", "toss_decision")
        )
        if toss_changed and match.status != "SCHEDULED":
            raise InvalidMatchSetupError("the toss cannot change after the match starts")

        pointer_fields = ("current_striker_id", "current_non_striker_id", "current_bowler_id")
        if match.status == "SCHEDULED":
            if requested == "LIVE":
                control = await _start(
                    session,
                    match,
                    control,
                    toss_winner_id=changes.get("toss_winner_id") or match.toss_winner_id,
                    toss_decision=changes.get("toss_decision") or match.toss_decision,
                    striker_id=changes.get("current_striker_id"),
                    non_striker_id=changes.get("current_non_striker_id"),
                    bowler_id=changes.get("current_bowler_id"),
                )
                if changes.get("current_batting_team_id") not in (
                    None,
                    control.batting_team_id,
                ):
                    raise InvalidMatchSetupError(
                        "batting team must follow from the toss"
                    )
            elif any(changes.get(field) is not None for field in pointer_fields):
                raise InvalidMatchSetupError("players are selected when the match starts")
            elif toss_changed:
                validate_toss(
                    match,
                    changes.get("toss_winner_id") or match.toss_winner_id,
                    changes.get("toss_decision") or match.toss_decision,
                )
                match.toss_winner_id = changes.get("toss_winner_id") or match.toss_winner_id
                match.toss_decision = changes.get("toss_decision") or match.toss_decision
        elif changes.get("current_innings") not in (None, control.innings):
            control = await _next_innings(
                session,
                match,
                control,
                striker_id=changes.get("current_striker_id"),
                non_striker_id=changes.get("current_non_striker_id"),
                bowler_id=changes.get("current_bowler_id"),
                batting_team_id=changes.get("current_batting_team_id"),
            )
        else:
            control = await _update_pointers(session, match, control, changes)

        if requested == "COMPLETED" and match.status != "COMPLETED":
            control = await _complete(
                session,
                match,
                control,
                winning_team_id=changes.get("winning_team_id"),
                man_of_the_match_id=changes.get("man_of_the_match_id"),
                result_description=changes.get("result_description"),
            )
        else:
            if changes.get("winning_team_id") is not None and match.status != "COMPLETED":
                raise InvalidMatchSetupError("the winner is recorded when the match completes")
            if changes.get("man_of_the_match_id") is not None:
                if match.status == "SCHEDULED":
                    raise InvalidMatchSetupError("awards are given once the match has started")
                validate_award(
                    changes["man_of_the_match_id"], await match_rosters(session, match)
                )
                match.man_of_the_match_id = changes["man_of_the_match_id"]
            if changes.get("result_description") is not None:
                match.result_description = changes["result_description"]

        save_control(match, control)
    return match


async def _update_pointers(
    session: AsyncSession,
    match: Match,
    control: MatchControl,
    changes: dict[str, Any],
) -> MatchControl:
    striker_id = changes.get("current_striker_id")
    non_striker_id = changes.get("current_non_striker_id")
    bowler_id = changes.get("current_bowler_id")
    if (
        changes.get("current_batting_team_id") is not None
        and changes["current_batting_team_id"] != control.batting_team_id
    ):
        raise InvalidMatchSetupError("the batting side only changes with a new innings")
    if striker_id is None and non_striker_id is None and bowler_id is None:
        return control

    require_live(match)
    rosters = await match_rosters(session, match, control.batting_team_id)
    if striker_id is not None or non_striker_id is not None:
        _, dismissed = await _dismissed(session, match, control.innings)
        new_striker = striker_id if striker_id is not None else control.striker_id
        new_non_striker = (
            non_striker_id if non_striker_id is not None else control.non_striker_id
        )
        validate_batting_pair(
            new_striker,
            new_non_striker,
            rosters,
            current=(control.striker_id, control.non_striker_id),
            dismissed=dismissed,
        )
        control = replace(
            control,
            striker_id=new_striker,
            non_striker_id=new_non_striker,
            awaiting_batsman=control.awaiting_batsman
            and (new_striker is None or new_non_striker is None),
        )
    if bowler_id is not None:
        validate_bowler_selection(bowler_id, rosters)
        control = rules.with_bowler(control, bowler_id)
    return control
