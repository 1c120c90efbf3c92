"""initial scoring schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "tournament",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "player",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "team",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("tournament_id", sa.String(), sa.ForeignKey("tournament.id"), nullable=True),
        sa.Column(
            "player_ids",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "match",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tournament_id", sa.String(), sa.ForeignKey("tournament.id"), nullable=True),
        sa.Column("team_a_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("team_b_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("overs", sa.Integer(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="SCHEDULED"),
        sa.Column("toss_winner_id", sa.String(), sa.ForeignKey("team.id"), nullable=True),
        sa.Column("toss_decision", sa.String(), nullable=True),
        sa.Column("current_innings", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_batting_team_id", sa.String(), sa.ForeignKey("team.id"), nullable=True),
        sa.Column("current_striker_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("current_non_striker_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("current_bowler_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("awaiting_bowler", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("awaiting_batsman", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("control_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "rebowl_wide_or_no_ball",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("winning_team_id", sa.String(), sa.ForeignKey("team.id"), nullable=True),
        sa.Column("man_of_the_match_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("result_description", sa.Text(), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_match_status", "match", ["status"])
    op.create_index("ix_match_tournament_id", "match", ["tournament_id"])

    op.create_table(
        "ball_event",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("innings", sa.Integer(), nullable=False),
        sa.Column("over_number", sa.Integer(), nullable=False),
        sa.Column("ball_number", sa.Integer(), nullable=False),
        sa.Column("striker_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("non_striker_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("bowler_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("batting_team_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("runs_scored", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_wicket", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("wicket_type", sa.String(), nullable=True),
        sa.Column("extras", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("extra_type", sa.String(), nullable=False, server_default="NONE"),
        sa.Column("is_valid_ball", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("match_id", "seq", name="uq_ball_event_match_id_seq"),
    )
    op.create_index(
        "uq_ball_event_valid_position",
        "ball_event",
        ["match_id", "innings", "over_number", "ball_number"],
        unique=True,
        sqlite_where=sa.text("is_valid_ball = 1"),
        postgresql_where=sa.text("is_valid_ball"),
    )
    op.create_index(
        "ix_ball_event_match_id_innings",
        "ball_event",
        ["match_id", "innings"],
    )


def downgrade():
    op.drop_index("ix_ball_event_match_id_innings", table_name="ball_event")
    op.drop_index("uq_ball_event_valid_position", table_name="ball_event")
    op.drop_table("ball_event")
    op.drop_index("ix_match_tournament_id", table_name="match")
    op.drop_index("ix_match_status", table_name="match")
    op.drop_table("match")
    op.drop_table("team")
    op.drop_table("player")
    op.drop_table("tournament")
