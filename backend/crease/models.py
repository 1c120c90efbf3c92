from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Boolean,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from .db import Base


MATCH_STATUSES = ("SCHEDULED", "LIVE", "COMPLETED")
TOSS_DECISIONS = ("BAT", "BOWL")
EXTRA_TYPES = ("NONE", "WIDE", "NO_BALL", "BYE", "LEG_BYE")


class Tournament(Base):
    __tablename__ = "tournament"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)


class Player(Base):
    __tablename__ = "player"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)


class Team(Base):
    """A side and its roster; the roster is maintained outside the scoring core."""

    __tablename__ = "team"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    tournament_id = Column(String, ForeignKey("tournament.id"), nullable=True)
    player_ids = Column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    tournament_id = Column(String, ForeignKey("tournament.id"), nullable=True, index=True)
    team_a_id = Column(String, ForeignKey("team.id"), nullable=False)
    team_b_id = Column(String, ForeignKey("team.id"), nullable=False)
    overs = Column(Integer, nullable=True)  # None = no limit
    start_time = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default="SCHEDULED", index=True)

    toss_winner_id = Column(String, ForeignKey("team.id"), nullable=True)
    toss_decision = Column(String, nullable=True)  # "BAT" | "BOWL"

    # Control pointers; written only by the match controller.
    current_innings = Column(Integer, nullable=False, default=1)
    current_batting_team_id = Column(String, ForeignKey("team.id"), nullable=True)
    current_striker_id = Column(String, ForeignKey("player.id"), nullable=True)
    current_non_striker_id = Column(String, ForeignKey("player.id"), nullable=True)
    current_bowler_id = Column(String, ForeignKey("player.id"), nullable=True)
    awaiting_bowler = Column(Boolean, nullable=False, default=False)
    awaiting_batsman = Column(Boolean, nullable=False, default=False)
    control_version = Column(Integer, nullable=False, default=0)

    rebowl_wide_or_no_ball = Column(Boolean, nullable=False, default=True)

    winning_team_id = Column(String, ForeignKey("team.id"), nullable=True)
    man_of_the_match_id = Column(String, ForeignKey("player.id"), nullable=True)
    result_description = Column(Text, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    # Every UPDATE checks and bumps the version; a racing writer fails with
    # StaleDataError instead of silently overwriting the pointers.
    __mapper_args__ = {"version_id_col": control_version}


class BallEvent(Base):
    """One delivery. Rows are appended and only ever removed by undo."""

    __tablename__ = "ball_event"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id"), nullable=False)
    seq = Column(Integer, nullable=False)
    innings = Column(Integer, nullable=False)
    over_number = Column(Integer, nullable=False)  # 0-based
    ball_number = Column(Integer, nullable=False)  # 1-based
    striker_id = Column(String, ForeignKey("player.id"), nullable=False)
    non_striker_id = Column(String, ForeignKey("player.id"), nullable=True)
    bowler_id = Column(String, ForeignKey("player.id"), nullable=False)
    batting_team_id = Column(String, ForeignKey("team.id"), nullable=False)
    runs_scored = Column(Integer, nullable=False, default=0)
    is_wicket = Column(Boolean, nullable=False, default=False)
    wicket_type = Column(String, nullable=True)
    extras = Column(Integer, nullable=False, default=0)
    extra_type = Column(String, nullable=False, default="NONE")
    is_valid_ball = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "seq", name="uq_ball_event_match_id_seq"),
        Index(
            "uq_ball_event_valid_position",
            "match_id",
            "innings",
            "over_number",
            "ball_number",
            unique=True,
            sqlite_where=is_valid_ball.is_(True),
            postgresql_where=is_valid_ball.is_(True),
        ),
        Index("ix_ball_event_match_id_innings", "match_id", "innings"),
    )
