from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator, field_validator, ConfigDict

ExtraType = Literal["NONE", "WIDE", "NO_BALL", "BYE", "LEG_BYE"]
MatchStatus = Literal["SCHEDULED", "LIVE", "COMPLETED"]
TossDecision = Literal["BAT", "BOWL"]

# Short codes used by scorer keypads.
EXTRA_TYPE_ALIASES = {
    "WD": "WIDE",
    "NB": "NO_BALL",
    "NOBALL": "NO_BALL",
    "B": "BYE",
    "LB": "LEG_BYE",
    "LEGBYE": "LEG_BYE",
}


def _strip_id(value: Any, field: str) -> Any:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field} must not be empty")
    return trimmed


class MatchCreate(BaseModel):
    team_a_id: str
    team_b_id: str
    tournament_id: Optional[str] = None
    overs: Optional[int] = Field(default=None, ge=1, le=100)
    start_time: Optional[datetime] = None
    rebowl_wide_or_no_ball: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("team_a_id", "team_b_id", "tournament_id", mode="before")
    @classmethod
    def _validate_ids(cls, value, info):
        return _strip_id(value, info.field_name)

    @model_validator(mode="after")
    def _distinct_teams(self) -> "MatchCreate":
        if self.team_a_id == self.team_b_id:
            raise ValueError("team_a_id and team_b_id must differ")
        return self


class MatchStart(BaseModel):
    """Toss result and opening players; moves a match from SCHEDULED to LIVE."""

    toss_winner_id: str
    toss_decision: TossDecision
    striker_id: str
    non_striker_id: str
    bowler_id: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("toss_decision", mode="before")
    @classmethod
    def _upper_decision(cls, value):
        return value.upper() if isinstance(value, str) else value


class InningsStart(BaseModel):
    striker_id: str
    non_striker_id: str
    bowler_id: str

    model_config = ConfigDict(extra="forbid")


class BowlerSelect(BaseModel):
    bowler_id: str


class BatsmanSelect(BaseModel):
    player_id: str


class MatchUpdate(BaseModel):
    """Partial match update; any subset of the fields may be sent."""

    status: Optional[MatchStatus] = None
    toss_winner_id: Optional[str] = None
    toss_decision: Optional[TossDecision] = None
    current_innings: Optional[int] = Field(default=None, ge=1, le=2)
    current_batting_team_id: Optional[str] = None
    current_striker_id: Optional[str] = None
    current_non_striker_id: Optional[str] = None
    current_bowler_id: Optional[str] = None
    winning_team_id: Optional[str] = None
    man_of_the_match_id: Optional[str] = None
    result_description: Optional[str] = Field(default=None, max_length=500)
    is_completed: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _ensure_fields(self) -> "MatchUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        if self.is_completed is False and self.status == "COMPLETED":
            raise ValueError("is_completed=false contradicts status COMPLETED")
        return self


class MatchComplete(BaseModel):
    winning_team_id: Optional[str] = None
    man_of_the_match_id: Optional[str] = None
    result_description: Optional[str] = Field(default=None, max_length=500)


class AwardIn(BaseModel):
    man_of_the_match_id: Optional[str] = None


class SettingsIn(BaseModel):
    rebowl_wide_or_no_ball: bool


class BallEventIn(BaseModel):
    """A delivery as submitted by the scorer.

    Position and player fields are optional; when present they must agree with
    the match's live state or the delivery is rejected as stale.
    ``is_valid_ball`` is accepted for compatibility but always recomputed from
    the match settings.
    """

    match_id: Optional[str] = None
    innings: Optional[int] = Field(default=None, ge=1, le=2)
    over_number: Optional[int] = Field(default=None, ge=0)
    ball_number: Optional[int] = Field(default=None, ge=1, le=6)
    bowler_id: Optional[str] = None
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    batting_team_id: Optional[str] = None
    runs_scored: int = Field(..., ge=0)
    is_wicket: bool = False
    wicket_type: Optional[str] = Field(default=None, max_length=40)
    extras: Optional[int] = Field(default=None, ge=0)
    extra_type: Optional[ExtraType] = None
    is_valid_ball: Optional[bool] = None

    @field_validator("runs_scored", "extras", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        if isinstance(value, bool):
            raise TypeError("must be an integer (not a boolean)")
        return value

    @field_validator("extra_type", mode="before")
    @classmethod
    def _normalize_extra_type(cls, value):
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise TypeError("extra_type must be a string")
        upper = value.strip().upper()
        return EXTRA_TYPE_ALIASES.get(upper, upper)

    @field_validator("wicket_type", mode="before")
    @classmethod
    def _normalize_wicket_type(cls, value):
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError("wicket_type must be a string")
        return value.strip().upper().replace(" ", "_") or None

    @model_validator(mode="after")
    def _wicket_type_needs_wicket(self) -> "BallEventIn":
        if self.wicket_type and not self.is_wicket:
            raise ValueError("wicket_type is only allowed when is_wicket is true")
        return self


class BatterFiguresOut(BaseModel):
    player_id: str
    runs: int
    balls: int
    fours: int
    sixes: int


class BowlerFiguresOut(BaseModel):
    player_id: str
    overs: str
    balls: int
    runs: int
    wickets: int


class LiveStateOut(BaseModel):
    """Authoritative live state; clients re-fetch this on every change signal."""

    match_id: str
    status: MatchStatus
    version: int
    innings: int
    batting_team_id: Optional[str] = None
    bowling_team_id: Optional[str] = None
    striker_id: Optional[str] = None
    non_striker_id: Optional[str] = None
    bowler_id: Optional[str] = None
    awaiting_bowler: bool
    awaiting_batsman: bool
    rebowl_wide_or_no_ball: bool
    all_out: bool
    innings_complete: bool
    score: int
    wickets: int
    extras: int
    deliveries: int
    valid_balls: int
    over: int
    ball_in_over: int
    overs: str
    overs_limit: Optional[int] = None
    balls_remaining: Optional[int] = None
    run_rate: float
    this_over: List[str] = Field(default_factory=list)
    striker: Optional[BatterFiguresOut] = None
    non_striker: Optional[BatterFiguresOut] = None
    bowler: Optional[BowlerFiguresOut] = None


class BallEventOut(BaseModel):
    id: str
    match_id: str
    seq: int
    innings: int
    over_number: int
    ball_number: int
    striker_id: str
    non_striker_id: Optional[str] = None
    bowler_id: str
    batting_team_id: str
    runs_scored: int
    is_wicket: bool
    wicket_type: Optional[str] = None
    extras: int
    extra_type: ExtraType
    is_valid_ball: bool


class BallRecordedOut(BaseModel):
    event: BallEventOut
    state: LiveStateOut


class UndoOut(BaseModel):
    ok: bool = True
    removed: BallEventOut
    state: LiveStateOut


class MatchOut(BaseModel):
    """Match record including the live control pointers."""

    id: str
    tournament_id: Optional[str] = None
    team_a_id: str
    team_b_id: str
    overs: Optional[int] = None
    start_time: Optional[datetime] = None
    status: MatchStatus
    toss_winner_id: Optional[str] = None
    toss_decision: Optional[TossDecision] = None
    current_innings: int
    current_batting_team_id: Optional[str] = None
    current_striker_id: Optional[str] = None
    current_non_striker_id: Optional[str] = None
    current_bowler_id: Optional[str] = None
    awaiting_bowler: bool
    awaiting_batsman: bool
    rebowl_wide_or_no_ball: bool
    winning_team_id: Optional[str] = None
    man_of_the_match_id: Optional[str] = None
    result_description: Optional[str] = None
    is_completed: bool
    version: int = Field(validation_alias="control_version")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class MatchIdOut(BaseModel):
    """Schema returned after creating a match."""

    id: str


class BattingCardOut(BaseModel):
    player_id: str
    name: Optional[str] = None
    runs: int
    balls: int
    fours: int
    sixes: int


class BowlingCardOut(BaseModel):
    player_id: str
    name: Optional[str] = None
    overs: str
    balls: int
    runs: int
    wickets: int


class InningsCardOut(BaseModel):
    innings: int
    batting_team_id: Optional[str] = None
    score: int
    wickets: int
    extras: int
    overs: str
    run_rate: float
    batting: List[BattingCardOut] = Field(default_factory=list)
    bowling: List[BowlingCardOut] = Field(default_factory=list)


class MatchStatsOut(BaseModel):
    match_id: str
    man_of_the_match_id: Optional[str] = None
    innings: List[InningsCardOut] = Field(default_factory=list)


class ChangedSignal(BaseModel):
    """Body of every broadcast: which match changed, nothing else."""

    type: Literal["changed"] = "changed"
    matchId: str


class StreamCommand(BaseModel):
    action: Literal["join", "leave"]
    matchId: str = Field(..., min_length=1)

    @field_validator("action", mode="before")
    @classmethod
    def _lower_action(cls, value):
        return value.lower() if isinstance(value, str) else value


class ProblemOut(BaseModel):
    detail: Optional[str] = None
    code: str
    extra: Optional[Dict[str, Any]] = None
