"""Undo the most recent delivery of the current innings."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import MatchNotLiveError
from ..scoring import control as rules
from ..scoring.control import MatchControl
from . import event_store
from .roster import match_rosters
from .controller import (
    innings_state,
    live_payload,
    load_for_update,
    mutation,
    save_control,
)

logger = logging.getLogger(__name__)


async def undo(
    session: AsyncSession, mid: str, *, restore_pointers: bool = False
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Remove the last delivery and return ``(removed_event, live_state)``.

    Pending bowler/batsman requests raised by that delivery are dropped and
    the slot it vacated is refilled from it; every other pointer stays where
    it is. With ``restore_pointers`` they all go back to the striker,
    non-striker and bowler recorded on the removed delivery. An empty log
    raises ``EmptyLogError`` and leaves the match untouched.
    """

    async with mutation(session, mid):
        match = await load_for_update(session, mid)
        if match.status == "COMPLETED":
            raise MatchNotLiveError(match.status)
        control = MatchControl.from_match(match)
        removed = event_store.event_payload(
            await event_store.remove_last(session, mid, innings=control.innings)
        )
        if restore_pointers:
            control = rules.restore_from_event(control, removed)
        else:
            control = rules.refill_vacancies(control, removed)
        save_control(match, control)
        _, state = await innings_state(session, match, control.innings)
        rosters = await match_rosters(session, match, control.batting_team_id)

    logger.info(
        "Undid delivery %s.%s (seq %s) for match %s",
        removed["over_number"],
        removed["ball_number"],
        removed["seq"],
        mid,
    )
    return removed, live_payload(match, control, state, rosters)
