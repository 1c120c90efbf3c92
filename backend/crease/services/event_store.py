"""Append-only ball-event log.

``append`` is the only way an event enters the log and ``remove_last`` the
only way one leaves it. Both flush without committing; the match controller
owns the transaction and the broadcast.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import EmptyLogError, MatchConflictError
from ..models import BallEvent

EVENT_FIELDS = (
    "innings",
    "over_number",
    "ball_number",
    "striker_id",
    "non_striker_id",
    "bowler_id",
    "batting_team_id",
    "runs_scored",
    "is_wicket",
    "wicket_type",
    "extras",
    "extra_type",
    "is_valid_ball",
)


def event_payload(row: BallEvent) -> dict[str, Any]:
    """Plain-dict view of a stored event, as consumed by the scoring engine."""

    payload = {field: getattr(row, field) for field in EVENT_FIELDS}
    payload["id"] = row.id
    payload["match_id"] = row.match_id
    payload["seq"] = row.seq
    return payload


async def _next_seq(session: AsyncSession, match_id: str) -> int:
    current = (
        await session.execute(
            select(func.coalesce(func.max(BallEvent.seq), 0)).where(
                BallEvent.match_id == match_id
            )
        )
    ).scalar_one()
    return int(current) + 1


async def append(session: AsyncSession, match_id: str, event: dict[str, Any]) -> BallEvent:
    row = BallEvent(
        id=uuid.uuid4().hex,
        match_id=match_id,
        seq=await _next_seq(session, match_id),
        **{field: event.get(field) for field in EVENT_FIELDS},
    )
    session.add(row)
    try:
        await session.flush()
    except IntegrityError as exc:
        # Another writer already took this seq or ball position.
        raise MatchConflictError(
            match_id, "another delivery was recorded at the same time; retry"
        ) from exc
    return row


async def list_for_innings(
    session: AsyncSession, match_id: str, innings: int
) -> list[BallEvent]:
    return list(
        (
            await session.execute(
                select(BallEvent)
                .where(BallEvent.match_id == match_id, BallEvent.innings == innings)
                .order_by(BallEvent.seq)
            )
        )
        .scalars()
        .all()
    )


async def list_for_match(session: AsyncSession, match_id: str) -> list[BallEvent]:
    return list(
        (
            await session.execute(
                select(BallEvent)
                .where(BallEvent.match_id == match_id)
                .order_by(BallEvent.seq)
            )
        )
        .scalars()
        .all()
    )


async def remove_last(
    session: AsyncSession, match_id: str, innings: Optional[int] = None
) -> BallEvent:
    """Delete and return the most recently appended event.

    Raises ``EmptyLogError`` when the match (or ``innings``) has no events.
    """

    stmt = select(BallEvent).where(BallEvent.match_id == match_id)
    if innings is not None:
        stmt = stmt.where(BallEvent.innings == innings)
    row = (
        await session.execute(stmt.order_by(BallEvent.seq.desc()).limit(1))
    ).scalar_one_or_none()
    if row is None:
        raise EmptyLogError(match_id)
    await session.delete(row)
    await session.flush()
    return row
