"""Transition validation for live scoring.

Every check runs before anything is written and raises the specific
``DomainException`` for the first rule that fails.
"""

from typing import Any, Dict, Iterable, Optional

from ..exceptions import (
    DuplicateBatsmanError,
    InningsOverError,
    InvalidBatsmanError,
    InvalidBowlerError,
    InvalidMatchSetupError,
    InvalidStatusTransitionError,
    MatchNotLiveError,
    OversLimitReachedError,
    PlayersNotSelectedError,
)
from ..models import Match, TOSS_DECISIONS
from ..scoring.control import MatchControl, is_all_out, remaining_batsman
from ..scoring.cricket import BALLS_PER_OVER
from .roster import MatchRosters

STATUS_TRANSITIONS: dict[str, set[str]] = {
    "SCHEDULED": {"LIVE"},
    "LIVE": {"COMPLETED"},
    "COMPLETED": set(),
}


def require_live(match: Match) -> None:
    if match.status != "LIVE":
        raise MatchNotLiveError(match.status)


def validate_delivery(
    match: Match,
    control: MatchControl,
    state: Dict[str, Any],
    rosters: MatchRosters,
) -> None:
    """Check that a delivery may be recorded right now.

    Order: match live, side not all out, players selected, overs limit,
    bowler not on the batting side. A batting end left empty by the last
    ball of the innings is reported as the overs limit.
    """

    require_live(match)

    if is_all_out(state["wickets"], len(rosters.batting)):
        raise InningsOverError(state["wickets"])

    overs_done = bool(match.overs) and state["valid_balls"] >= match.overs * BALLS_PER_OVER

    if control.awaiting_bowler or not control.bowler_id:
        raise PlayersNotSelectedError("select the bowler for the next over")
    batsman_missing = not control.striker_id or not control.non_striker_id
    if control.awaiting_batsman or (batsman_missing and not overs_done):
        raise PlayersNotSelectedError("select the incoming batsman")

    if overs_done:
        raise OversLimitReachedError(match.overs)

    if rosters.on_batting_side(control.bowler_id):
        raise InvalidBowlerError()


def validate_bowler_selection(player_id: str, rosters: MatchRosters) -> None:
    if rosters.on_batting_side(player_id):
        raise InvalidBowlerError()
    if rosters.bowling and not rosters.on_bowling_side(player_id):
        raise InvalidBowlerError("bowler must belong to the bowling team")


def validate_batsman_selection(
    player_id: str,
    control: MatchControl,
    rosters: MatchRosters,
    dismissed: Iterable[str] = (),
) -> None:
    if player_id == remaining_batsman(control):
        raise DuplicateBatsmanError(player_id)
    if rosters.batting and not rosters.on_batting_side(player_id):
        raise InvalidBatsmanError()
    if player_id in set(dismissed):
        raise InvalidBatsmanError(f"player '{player_id}' is already out this innings")


def validate_batting_pair(
    striker_id: Optional[str],
    non_striker_id: Optional[str],
    rosters: MatchRosters,
    *,
    current: Iterable[Optional[str]] = (),
    dismissed: Iterable[str] = (),
) -> None:
    """A manually set striker/non-striker pair; only incoming players are checked."""

    if striker_id is not None and striker_id == non_striker_id:
        raise DuplicateBatsmanError(striker_id)
    already_in = set(current)
    out = set(dismissed)
    for pid in (striker_id, non_striker_id):
        if pid is None or pid in already_in:
            continue
        if rosters.batting and not rosters.on_batting_side(pid):
            raise InvalidBatsmanError(
                f"player '{pid}' does not belong to the batting team"
            )
        if pid in out:
            raise InvalidBatsmanError(f"player '{pid}' is already out this innings")


def validate_openers(
    striker_id: Optional[str],
    non_striker_id: Optional[str],
    bowler_id: Optional[str],
    rosters: MatchRosters,
) -> None:
    """Opening striker, non-striker and bowler for a new innings."""

    if not striker_id or not non_striker_id or not bowler_id:
        raise PlayersNotSelectedError(
            "striker, non-striker and bowler are required to open an innings"
        )
    if striker_id == non_striker_id:
        raise DuplicateBatsmanError(striker_id)
    for pid in (striker_id, non_striker_id):
        if rosters.batting and not rosters.on_batting_side(pid):
            raise InvalidBatsmanError(
                f"player '{pid}' does not belong to the batting team"
            )
    validate_bowler_selection(bowler_id, rosters)


def validate_toss(match: Match, toss_winner_id: Optional[str], toss_decision: Optional[str]) -> None:
    if toss_winner_id not in (match.team_a_id, match.team_b_id):
        raise InvalidMatchSetupError("toss winner must be one of the two teams")
    if toss_decision not in TOSS_DECISIONS:
        raise InvalidMatchSetupError("toss decision must be BAT or BOWL")


def batting_team_from_toss(match: Match, toss_winner_id: str, toss_decision: str) -> str:
    if toss_decision == "BAT":
        return toss_winner_id
    return match.team_b_id if toss_winner_id == match.team_a_id else match.team_a_id


def validate_status_transition(current: str, requested: str) -> None:
    if requested == current:
        return
    if requested not in STATUS_TRANSITIONS:
        raise InvalidStatusTransitionError(current, requested, "unknown status")
    if requested not in STATUS_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(current, requested)


def validate_result(
    match: Match,
    winning_team_id: Optional[str],
    man_of_the_match_id: Optional[str],
    rosters: MatchRosters,
) -> None:
    if winning_team_id is not None and winning_team_id not in (
        match.team_a_id,
        match.team_b_id,
    ):
        raise InvalidMatchSetupError("winning team must be one of the two teams")
    validate_award(man_of_the_match_id, rosters)


def validate_award(player_id: Optional[str], rosters: MatchRosters) -> None:
    if player_id is None:
        return
    squad = set(rosters.batting) | set(rosters.bowling)
    if squad and player_id not in squad:
        raise InvalidMatchSetupError(
            f"player '{player_id}' did not play in this match"
        )
