"""Match control record and its transitions.

The control record holds the live pointers (innings, batting side, striker,
non-striker, bowler) and any pending selection requests. Every transition is
a pure function returning a new record; the controller persists the result.
"""

from dataclasses import asdict, dataclass, replace
from typing import Mapping, Optional

from .cricket import BALLS_PER_OVER


@dataclass(frozen=True)
class MatchControl:
    innings: int = 1
    batting_team_id: Optional[str] = None
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    bowler_id: Optional[str] = None
    awaiting_bowler: bool = False
    awaiting_batsman: bool = False
    version: int = 0

    @classmethod
    def from_match(cls, match) -> "MatchControl":
        return cls(
            innings=match.current_innings or 1,
            batting_team_id=match.current_batting_team_id,
            striker_id=match.current_striker_id,
            non_striker_id=match.current_non_striker_id,
            bowler_id=match.current_bowler_id,
            awaiting_bowler=bool(match.awaiting_bowler),
            awaiting_batsman=bool(match.awaiting_batsman),
            version=match.control_version or 0,
        )

    def pointers(self) -> dict:
        return {
            "striker_id": self.striker_id,
            "non_striker_id": self.non_striker_id,
            "bowler_id": self.bowler_id,
        }

    def as_dict(self) -> dict:
        return asdict(self)


def write_to_match(control: MatchControl, match) -> None:
    """Copy ``control`` onto the ``Match`` row (the version is ORM-managed)."""

    match.current_innings = control.innings
    match.current_batting_team_id = control.batting_team_id
    match.current_striker_id = control.striker_id
    match.current_non_striker_id = control.non_striker_id
    match.current_bowler_id = control.bowler_id
    match.awaiting_bowler = control.awaiting_bowler
    match.awaiting_batsman = control.awaiting_batsman


def is_all_out(wickets: int, roster_size: int) -> bool:
    if roster_size < 2:
        return False
    return wickets >= roster_size - 1


def over_completed(event: Mapping, valid_balls: int) -> bool:
    """Whether ``event`` was the sixth valid ball of its over.

    ``valid_balls`` is the innings count after the event was applied.
    """

    return (
        bool(event.get("is_valid_ball"))
        and valid_balls > 0
        and valid_balls % BALLS_PER_OVER == 0
    )


def after_delivery(
    control: MatchControl,
    event: Mapping,
    *,
    valid_balls: int,
    wickets: int,
    roster_size: int,
    overs_limit: Optional[int],
) -> MatchControl:
    """Pointer side effects of an accepted delivery.

    ``valid_balls`` and ``wickets`` are the innings totals including ``event``.
    """

    striker, non_striker = control.striker_id, control.non_striker_id
    if int(event.get("runs_scored") or 0) % 2 == 1:
        striker, non_striker = non_striker, striker

    limit_reached = bool(overs_limit) and valid_balls >= overs_limit * BALLS_PER_OVER

    awaiting_batsman = control.awaiting_batsman
    if event.get("is_wicket"):
        dismissed = event.get("striker_id")
        if striker == dismissed:
            striker = None
        elif non_striker == dismissed:
            non_striker = None
        awaiting_batsman = not (is_all_out(wickets, roster_size) or limit_reached)

    bowler, awaiting_bowler = control.bowler_id, control.awaiting_bowler
    if over_completed(event, valid_balls) and not limit_reached:
        bowler, awaiting_bowler = None, True

    return replace(
        control,
        striker_id=striker,
        non_striker_id=non_striker,
        bowler_id=bowler,
        awaiting_bowler=awaiting_bowler,
        awaiting_batsman=awaiting_batsman,
    )


def with_bowler(control: MatchControl, bowler_id: str) -> MatchControl:
    return replace(control, bowler_id=bowler_id, awaiting_bowler=False)


def with_batsman(control: MatchControl, player_id: str) -> MatchControl:
    """Put ``player_id`` into the vacant batting slot.

    The striker slot is filled first; with no vacancy the striker is replaced.
    """

    if control.striker_id is None or control.non_striker_id is not None:
        return replace(control, striker_id=player_id, awaiting_batsman=False)
    return replace(control, non_striker_id=player_id, awaiting_batsman=False)


def remaining_batsman(control: MatchControl) -> Optional[str]:
    """The batter who stays in when a new batsman fills the vacant slot."""

    if control.striker_id is None or control.non_striker_id is not None:
        return control.non_striker_id
    return control.striker_id


def discard_pending(control: MatchControl) -> MatchControl:
    return replace(control, awaiting_bowler=False, awaiting_batsman=False)


def refill_vacancies(control: MatchControl, event: Mapping) -> MatchControl:
    """Drop the requests raised by the undone ``event`` and refill what it vacated.

    The bowler returns when the over is reopened and a dismissed striker
    returns to the empty end. Occupied slots, including any strike swap, stay
    as they are.
    """

    striker, non_striker = control.striker_id, control.non_striker_id
    if event.get("is_wicket"):
        dismissed = event.get("striker_id")
        if striker is None and non_striker != dismissed:
            striker = dismissed
        elif non_striker is None and striker != dismissed:
            non_striker = dismissed
    return replace(
        control,
        striker_id=striker,
        non_striker_id=non_striker,
        bowler_id=control.bowler_id or event.get("bowler_id"),
        awaiting_bowler=False,
        awaiting_batsman=False,
    )


def restore_from_event(control: MatchControl, event: Mapping) -> MatchControl:
    """Rewind the live pointers to those recorded on ``event``."""

    return replace(
        control,
        striker_id=event.get("striker_id"),
        non_striker_id=event.get("non_striker_id"),
        bowler_id=event.get("bowler_id"),
        awaiting_bowler=False,
        awaiting_batsman=False,
    )


def for_new_innings(
    control: MatchControl,
    *,
    innings: int,
    batting_team_id: str,
    striker_id: str,
    non_striker_id: str,
    bowler_id: str,
) -> MatchControl:
    return replace(
        control,
        innings=innings,
        batting_team_id=batting_team_id,
        striker_id=striker_id,
        non_striker_id=non_striker_id,
        bowler_id=bowler_id,
        awaiting_bowler=False,
        awaiting_batsman=False,
    )
