import pytest

from crease import db
from crease.exceptions import EmptyLogError, MatchNotLiveError
from crease.services import controller, event_store
from crease.services.undo import undo

DERIVED = ("score", "wickets", "extras", "overs", "valid_balls", "this_over", "run_rate")


def _session():
    return db.session_factory()()


async def _live_match(session, overs=5):
    match = await controller.create_match(
        session, team_a_id="team-a", team_b_id="team-b", overs=overs
    )
    await controller.start_match(
        session,
        match.id,
        toss_winner_id="team-a",
        toss_decision="BAT",
        striker_id="a1",
        non_striker_id="a2",
        bowler_id="b1",
    )
    return match.id


@pytest.mark.anyio
async def test_undo_on_empty_log_changes_nothing(squads):
    async with _session() as session:
        mid = await _live_match(session)
        before = await controller.get_live_state(session, mid)
        with pytest.raises(EmptyLogError) as exc:
            await undo(session, mid)
        assert exc.value.code == "empty_log"
        assert await controller.get_live_state(session, mid) == before


@pytest.mark.anyio
async def test_undo_restores_totals_from_before_last_delivery(squads):
    async with _session() as session:
        mid = await _live_match(session)
        await controller.record_ball(session, mid, {"runs_scored": 4})
        await controller.record_ball(session, mid, {"extra_type": "WIDE"})
        _, before = await controller.record_ball(session, mid, {"runs_scored": 2})
        event, _ = await controller.record_ball(
            session, mid, {"is_wicket": True, "wicket_type": "CAUGHT"}
        )

        removed, state = await undo(session, mid)

        assert removed["id"] == event["id"]
        assert {k: state[k] for k in DERIVED} == {k: before[k] for k in DERIVED}
        rows = await event_store.list_for_innings(session, mid, 1)
        assert len(rows) == 3
        assert rows[-1].runs_scored == 2


@pytest.mark.anyio
async def test_undo_of_wicket_brings_the_batsman_back(squads):
    async with _session() as session:
        mid = await _live_match(session)
        await controller.record_ball(session, mid, {"runs_scored": 1})
        _, state = await controller.record_ball(session, mid, {"runs_scored": 0, "is_wicket": True})
        assert state["awaiting_batsman"] is True
        assert (state["striker_id"], state["non_striker_id"]) == (None, "a1")

        removed, state = await undo(session, mid)
        assert removed["striker_id"] == "a2"
        assert state["awaiting_batsman"] is False
        assert (state["striker_id"], state["non_striker_id"]) == ("a2", "a1")
        assert state["wickets"] == 0

        event, _ = await controller.record_ball(session, mid, {"runs_scored": 2})
        assert event["striker_id"] == "a2"


@pytest.mark.anyio
async def test_undo_of_last_ball_in_over_keeps_the_bowler(squads):
    async with _session() as session:
        mid = await _live_match(session)
        for _ in range(6):
            _, state = await controller.record_ball(session, mid, {"runs_scored": 0})
        assert state["awaiting_bowler"] is True
        assert state["bowler_id"] is None

        _, state = await undo(session, mid)
        assert state["awaiting_bowler"] is False
        assert state["bowler_id"] == "b1"
        assert state["overs"] == "0.5"

        event, _ = await controller.record_ball(session, mid, {"runs_scored": 0})
        assert (event["over_number"], event["ball_number"], event["bowler_id"]) == (0, 6, "b1")


@pytest.mark.anyio
async def test_undo_keeps_a_newly_selected_bowler(squads):
    async with _session() as session:
        mid = await _live_match(session)
        for _ in range(6):
            await controller.record_ball(session, mid, {"runs_scored": 0})
        await controller.select_bowler(session, mid, "b2")

        _, state = await undo(session, mid)
        assert state["bowler_id"] == "b2"
        assert state["awaiting_bowler"] is False


@pytest.mark.anyio
async def test_undo_can_restore_pointers_from_removed_delivery(squads):
    async with _session() as session:
        mid = await _live_match(session)
        for _ in range(5):
            await controller.record_ball(session, mid, {"runs_scored": 0})
        _, state = await controller.record_ball(session, mid, {"runs_scored": 1})
        assert state["awaiting_bowler"] is True
        assert state["bowler_id"] is None
        assert state["striker_id"] == "a2"

        removed, state = await undo(session, mid, restore_pointers=True)
        assert (removed["over_number"], removed["ball_number"]) == (0, 6)
        assert state["awaiting_bowler"] is False
        assert (state["striker_id"], state["non_striker_id"], state["bowler_id"]) == ("a1", "a2", "b1")
        assert state["overs"] == "0.5"

        event, _ = await controller.record_ball(session, mid, {"runs_scored": 0})
        assert (event["over_number"], event["ball_number"]) == (0, 6)


@pytest.mark.anyio
async def test_undo_is_scoped_to_current_innings(squads):
    async with _session() as session:
        mid = await _live_match(session, overs=1)
        for _ in range(6):
            await controller.record_ball(session, mid, {"runs_scored": 2})
        await controller.start_next_innings(
            session, mid, striker_id="b1", non_striker_id="b2", bowler_id="a11"
        )
        with pytest.raises(EmptyLogError):
            await undo(session, mid)
        assert len(await event_store.list_for_innings(session, mid, 1)) == 6


@pytest.mark.anyio
async def test_undo_after_completion_is_rejected(squads):
    async with _session() as session:
        mid = await _live_match(session)
        await controller.record_ball(session, mid, {"runs_scored": 1})
        await controller.complete_match(session, mid)
        with pytest.raises(MatchNotLiveError):
            await undo(session, mid)
        assert len(await event_store.list_for_match(session, mid)) == 1
