from types import SimpleNamespace

import pytest

from crease.exceptions import (
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
from crease.scoring.control import MatchControl
from crease.services.roster import MatchRosters
from crease.services import validation

BATTING = tuple(f"a{i}" for i in range(1, 12))
BOWLING = tuple(f"b{i}" for i in range(1, 12))
ROSTERS = MatchRosters("team-a", "team-b", BATTING, BOWLING)


def match(status="LIVE", overs=2):
    return SimpleNamespace(status=status, overs=overs, team_a_id="team-a", team_b_id="team-b")


def control(**overrides):
    base = dict(batting_team_id="team-a", striker_id="a1", non_striker_id="a2", bowler_id="b1")
    base.update(overrides)
    return MatchControl(**base)


def state(valid_balls=0, wickets=0):
    return {"valid_balls": valid_balls, "wickets": wickets}


def test_accepts_legal_delivery():
    validation.validate_delivery(match(), control(), state(), ROSTERS)


@pytest.mark.parametrize("status", ["SCHEDULED", "COMPLETED"])
def test_rejects_when_not_live(status):
    with pytest.raises(MatchNotLiveError) as exc:
        validation.validate_delivery(match(status), control(), state(), ROSTERS)
    assert exc.value.code == "match_not_live"


def test_not_live_is_checked_first():
    with pytest.raises(MatchNotLiveError):
        validation.validate_delivery(
            match("SCHEDULED"), control(bowler_id=None), state(valid_balls=12), ROSTERS
        )


@pytest.mark.parametrize(
    "overrides",
    [
        {"bowler_id": None},
        {"bowler_id": None, "awaiting_bowler": True},
        {"striker_id": None, "awaiting_batsman": True},
        {"non_striker_id": None},
    ],
    ids=["no-bowler", "awaiting-bowler", "awaiting-batsman", "no-non-striker"],
)
def test_rejects_missing_players(overrides):
    with pytest.raises(PlayersNotSelectedError):
        validation.validate_delivery(match(), control(**overrides), state(), ROSTERS)


def test_players_checked_before_overs_limit():
    with pytest.raises(PlayersNotSelectedError):
        validation.validate_delivery(match(), control(bowler_id=None), state(valid_balls=12), ROSTERS)


def test_rejects_after_overs_limit():
    with pytest.raises(OversLimitReachedError) as exc:
        validation.validate_delivery(match(overs=2), control(), state(valid_balls=12), ROSTERS)
    assert exc.value.code == "overs_limit_reached"


def test_empty_end_after_final_ball_reports_overs_limit():
    with pytest.raises(OversLimitReachedError):
        validation.validate_delivery(
            match(overs=2), control(striker_id=None), state(valid_balls=12, wickets=1), ROSTERS
        )


def test_unlimited_overs_never_reached():
    validation.validate_delivery(match(overs=None), control(), state(valid_balls=600), ROSTERS)


def test_rejects_after_all_out():
    with pytest.raises(InningsOverError):
        validation.validate_delivery(match(), control(), state(wickets=10), ROSTERS)


def test_rejects_bowler_from_batting_side():
    with pytest.raises(InvalidBowlerError):
        validation.validate_delivery(match(), control(bowler_id="a5"), state(), ROSTERS)


def test_bowler_selection():
    validation.validate_bowler_selection("b4", ROSTERS)
    with pytest.raises(InvalidBowlerError) as exc:
        validation.validate_bowler_selection("a3", ROSTERS)
    assert exc.value.detail == "bowler cannot be from the batting team"
    with pytest.raises(InvalidBowlerError):
        validation.validate_bowler_selection("stranger", ROSTERS)


def test_batsman_selection():
    vacant = control(striker_id=None, awaiting_batsman=True)
    validation.validate_batsman_selection("a3", vacant, ROSTERS)
    with pytest.raises(DuplicateBatsmanError):
        validation.validate_batsman_selection("a2", vacant, ROSTERS)
    with pytest.raises(InvalidBatsmanError):
        validation.validate_batsman_selection("b3", vacant, ROSTERS)
    with pytest.raises(InvalidBatsmanError):
        validation.validate_batsman_selection("a1", vacant, ROSTERS, dismissed={"a1"})


def test_openers():
    validation.validate_openers("a1", "a2", "b1", ROSTERS)
    with pytest.raises(PlayersNotSelectedError):
        validation.validate_openers("a1", None, "b1", ROSTERS)
    with pytest.raises(DuplicateBatsmanError):
        validation.validate_openers("a1", "a1", "b1", ROSTERS)
    with pytest.raises(InvalidBatsmanError):
        validation.validate_openers("a1", "b2", "b1", ROSTERS)
    with pytest.raises(InvalidBowlerError):
        validation.validate_openers("a1", "a2", "a3", ROSTERS)


def test_batting_pair_only_checks_incoming_players():
    validation.validate_batting_pair(
        "a2", "a1", ROSTERS, current=("a1", "a2"), dismissed={"a1"}
    )
    with pytest.raises(InvalidBatsmanError):
        validation.validate_batting_pair(
            "a3", "a2", ROSTERS, current=("a1", "a2"), dismissed={"a3"}
        )


def test_toss_and_batting_team():
    m = match("SCHEDULED")
    validation.validate_toss(m, "team-b", "BOWL")
    assert validation.batting_team_from_toss(m, "team-b", "BOWL") == "team-a"
    assert validation.batting_team_from_toss(m, "team-b", "BAT") == "team-b"
    with pytest.raises(InvalidMatchSetupError):
        validation.validate_toss(m, "team-z", "BAT")
    with pytest.raises(InvalidMatchSetupError):
        validation.validate_toss(m, "team-a", "FIELD")


@pytest.mark.parametrize(
    "current, requested",
    [("SCHEDULED", "COMPLETED"), ("COMPLETED", "LIVE"), ("LIVE", "SCHEDULED"), ("LIVE", "PAUSED")],
)
def test_rejects_invalid_status_transitions(current, requested):
    with pytest.raises(InvalidStatusTransitionError):
        validation.validate_status_transition(current, requested)


def test_allows_forward_and_same_status():
    validation.validate_status_transition("SCHEDULED", "LIVE")
    validation.validate_status_transition("LIVE", "COMPLETED")
    validation.validate_status_transition("LIVE", "LIVE")


def test_result_validation():
    m = match()
    validation.validate_result(m, None, None, ROSTERS)
    validation.validate_result(m, "team-b", "a4", ROSTERS)
    with pytest.raises(InvalidMatchSetupError):
        validation.validate_result(m, "team-z", None, ROSTERS)
    with pytest.raises(InvalidMatchSetupError):
        validation.validate_award("umpire", ROSTERS)
