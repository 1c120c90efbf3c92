"""Cricket innings engine.

Derives the live innings state (score, wickets, overs, run rate, this over,
live batter and bowler figures) from the ordered ball-event log. Events are
plain dictionaries shaped like the ball submission payload; the engine never
looks at a clock and never mutates the events it is given, so replaying the
same log always yields the same state.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

BALLS_PER_OVER = 6
EXTRA_TYPES = ("NONE", "WIDE", "NO_BALL", "BYE", "LEG_BYE")
REBOWLED_EXTRAS = ("WIDE", "NO_BALL")
# Runs on these deliveries are not off the bat.
NON_BAT_EXTRAS = ("WIDE", "BYE", "LEG_BYE")
EXTRA_CODES = {"WIDE": "WD", "NO_BALL": "NB", "BYE": "B", "LEG_BYE": "LB"}
# Dismissals not credited to the bowler.
NON_BOWLER_WICKETS = {"RUN_OUT", "RETIRED_OUT", "OBSTRUCTING_THE_FIELD"}


def normalize_extra_type(extra_type: Optional[str]) -> str:
    if extra_type is None or extra_type == "":
        return "NONE"
    value = str(extra_type).upper()
    if value not in EXTRA_TYPES:
        raise ValueError(f"unknown extra type {extra_type!r}")
    return value


def is_valid_ball(extra_type: Optional[str], rebowl_wide_or_no_ball: bool) -> bool:
    """Whether a delivery counts toward the six-ball over."""

    return (
        normalize_extra_type(extra_type) not in REBOWLED_EXTRAS
        or not rebowl_wide_or_no_ball
    )


def default_extras(extra_type: Optional[str], runs_scored: int) -> int:
    """Extras to record when the scorer did not give an amount.

    An extra with no runs is worth one; otherwise the extra mirrors the runs
    attributed to it.
    """

    if normalize_extra_type(extra_type) == "NONE":
        return 0
    return 1 if runs_scored == 0 else runs_scored


def overs_display(valid_balls: int) -> str:
    return f"{valid_balls // BALLS_PER_OVER}.{valid_balls % BALLS_PER_OVER}"


def next_ball_position(valid_balls: int) -> Tuple[int, int]:
    """``(over_number, ball_number)`` for the next delivery."""

    return valid_balls // BALLS_PER_OVER, valid_balls % BALLS_PER_OVER + 1


def run_rate(score: int, valid_balls: int) -> float:
    if not valid_balls:
        return 0.0
    return round(score / valid_balls * BALLS_PER_OVER, 2)


def ball_mark(event: Mapping) -> str:
    if event.get("is_wicket"):
        return "W"
    extra_type = normalize_extra_type(event.get("extra_type"))
    if extra_type != "NONE":
        return EXTRA_CODES[extra_type]
    return str(int(event.get("runs_scored") or 0))


def init_state(config: Dict) -> Dict:
    """Initialise an empty innings.

    ``config`` may contain ``overs`` (the innings limit, ``None`` for no
    limit) and ``innings`` (the innings number this state describes).
    """

    return {
        "config": {
            "overs": config.get("overs"),
            "innings": config.get("innings", 1),
        },
        "score": 0,
        "wickets": 0,
        "valid_balls": 0,
        "extras": 0,
        "deliveries": 0,
        "batting": {},
        "bowling": {},
        "balls": [],
    }


def _batter(state: Dict, player_id: str) -> Dict:
    return state["batting"].setdefault(
        player_id, {"runs": 0, "balls": 0, "fours": 0, "sixes": 0}
    )


def _bowler(state: Dict, player_id: str) -> Dict:
    return state["bowling"].setdefault(
        player_id, {"balls": 0, "runs": 0, "wickets": 0}
    )


def _as_count(event: Mapping, key: str) -> int:
    raw = event.get(key) or 0
    if isinstance(raw, bool):
        raise ValueError(f"{key} must be an integer")
    value = int(raw)
    if value < 0:
        raise ValueError(f"{key} must be >= 0")
    return value


def apply(event: Mapping, state: Dict) -> Dict:
    runs = _as_count(event, "runs_scored")
    extras = _as_count(event, "extras")
    extra_type = normalize_extra_type(event.get("extra_type"))
    valid = bool(event.get("is_valid_ball", True))
    wicket = bool(event.get("is_wicket"))

    state["score"] += runs + extras
    state["extras"] += extras
    state["deliveries"] += 1
    if wicket:
        state["wickets"] += 1
    if valid:
        state["valid_balls"] += 1

    striker_id = event.get("striker_id")
    if striker_id:
        batter = _batter(state, striker_id)
        if valid:
            batter["balls"] += 1
        if extra_type not in NON_BAT_EXTRAS:
            batter["runs"] += runs
            if runs == 4:
                batter["fours"] += 1
            elif runs == 6:
                batter["sixes"] += 1

    bowler_id = event.get("bowler_id")
    if bowler_id:
        bowler = _bowler(state, bowler_id)
        if valid:
            bowler["balls"] += 1
        if extra_type not in ("BYE", "LEG_BYE"):
            bowler["runs"] += runs
        if extra_type in REBOWLED_EXTRAS:
            bowler["runs"] += extras
        if wicket and (event.get("wicket_type") or "").upper() not in NON_BOWLER_WICKETS:
            bowler["wickets"] += 1

    state["balls"].append(
        {"over": int(event.get("over_number") or 0), "mark": ball_mark(event)}
    )
    return state


def _batter_figures(state: Dict, player_id: Optional[str]) -> Optional[Dict]:
    if not player_id:
        return None
    figures = state["batting"].get(player_id) or {
        "runs": 0,
        "balls": 0,
        "fours": 0,
        "sixes": 0,
    }
    return {"player_id": player_id, **figures}


def _bowler_figures(state: Dict, player_id: Optional[str]) -> Optional[Dict]:
    if not player_id:
        return None
    figures = state["bowling"].get(player_id) or {"balls": 0, "runs": 0, "wickets": 0}
    return {
        "player_id": player_id,
        "overs": overs_display(figures["balls"]),
        **figures,
    }


def summary(state: Dict, pointers: Optional[Mapping] = None) -> Dict:
    pointers = pointers or {}
    valid = state["valid_balls"]
    over, ball_in_over = divmod(valid, BALLS_PER_OVER)
    overs_limit = state["config"].get("overs")
    balls_remaining = None
    if overs_limit:
        balls_remaining = max(overs_limit * BALLS_PER_OVER - valid, 0)

    return {
        "innings": state["config"].get("innings", 1),
        "score": state["score"],
        "wickets": state["wickets"],
        "extras": state["extras"],
        "deliveries": state["deliveries"],
        "valid_balls": valid,
        "over": over,
        "ball_in_over": ball_in_over,
        "overs": overs_display(valid),
        "overs_limit": overs_limit,
        "balls_remaining": balls_remaining,
        "run_rate": run_rate(state["score"], valid),
        "this_over": [b["mark"] for b in state["balls"] if b["over"] == over],
        "striker": _batter_figures(state, pointers.get("striker_id")),
        "non_striker": _batter_figures(state, pointers.get("non_striker_id")),
        "bowler": _bowler_figures(state, pointers.get("bowler_id")),
    }


def replay(events: Iterable[Mapping], config: Optional[Dict] = None) -> Dict:
    state = init_state(config or {})
    for event in events:
        state = apply(event, state)
    return state


def reconstruct(
    events: Iterable[Mapping],
    pointers: Optional[Mapping] = None,
    config: Optional[Dict] = None,
) -> Dict:
    """Derive the live innings summary from ``events`` and the live pointers."""

    return summary(replay(events, config), pointers)


def scorecard(events: Iterable[Mapping]) -> List[Dict]:
    """Full batting and bowling cards, one entry per innings played."""

    by_innings: Dict[int, List[Mapping]] = {}
    for event in events:
        by_innings.setdefault(int(event.get("innings") or 1), []).append(event)

    cards = []
    for innings in sorted(by_innings):
        innings_events = by_innings[innings]
        state = replay(innings_events, {"innings": innings})
        batting_team_id = innings_events[0].get("batting_team_id")
        batting = [
            {"player_id": pid, **figures}
            for pid, figures in state["batting"].items()
        ]
        bowling = [
            {"player_id": pid, "overs": overs_display(figures["balls"]), **figures}
            for pid, figures in state["bowling"].items()
        ]
        cards.append(
            {
                "innings": innings,
                "batting_team_id": batting_team_id,
                "score": state["score"],
                "wickets": state["wickets"],
                "extras": state["extras"],
                "overs": overs_display(state["valid_balls"]),
                "run_rate": run_rate(state["score"], state["valid_balls"]),
                "batting": batting,
                "bowling": sorted(bowling, key=lambda b: -b["wickets"]),
            }
        )
    return cards
