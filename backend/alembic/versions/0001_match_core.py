"""match core tables

Revision ID: 0001_match_core
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_match_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, nullable: bool = False, server_default: bool = False):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now() if server_default else None,
        nullable=nullable,
    )


def upgrade():
    op.create_table(
        "profile",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False, server_default="1200"),
        sa.Column("rating_provisional", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.CheckConstraint("matches_played >= 0", name="ck_profile_matches_played"),
    )

    op.create_table(
        "match",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("player1_id", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("player2_id", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("format", sa.String(), nullable=False),
        _timestamp("scheduled_at", nullable=True),
        _timestamp("played_at", nullable=True),
        sa.Column("location_name", sa.String(200), nullable=True),
        sa.Column("location_city", sa.String(100), nullable=True),
        sa.Column("score_detail", sa.JSON(), nullable=True),
        sa.Column("player1_sets_won", sa.Integer(), nullable=True),
        sa.Column("player2_sets_won", sa.Integer(), nullable=True),
        sa.Column("winner_id", sa.String(), sa.ForeignKey("profile.id"), nullable=True),
        sa.Column("loser_id", sa.String(), sa.ForeignKey("profile.id"), nullable=True),
        sa.Column("result_submitted_by", sa.String(), sa.ForeignKey("profile.id"), nullable=True),
        sa.Column("result_confirmed_by", sa.String(), sa.ForeignKey("profile.id"), nullable=True),
        _timestamp("result_confirmed_at", nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("player1_rating_before", sa.Integer(), nullable=True),
        sa.Column("player2_rating_before", sa.Integer(), nullable=True),
        sa.Column("player1_rating_after", sa.Integer(), nullable=True),
        sa.Column("player2_rating_after", sa.Integer(), nullable=True),
        sa.Column("player1_rating_delta", sa.Integer(), nullable=True),
        sa.Column("player2_rating_delta", sa.Integer(), nullable=True),
        _timestamp("created_at", server_default=True),
        _timestamp("updated_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("player1_id <> player2_id", name="ck_match_distinct_players"),
        sa.CheckConstraint(
            "result_confirmed_by IS NULL OR result_confirmed_by <> result_submitted_by",
            name="ck_match_confirmer_not_submitter",
        ),
    )
    op.create_index("ix_match_player1_id", "match", ["player1_id"])
    op.create_index("ix_match_player2_id", "match", ["player2_id"])

    op.create_table(
        "match_request",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("requester_id", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("recipient_id", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        _timestamp("proposed_at"),
        sa.Column("proposed_format", sa.String(), nullable=False),
        sa.Column("location_name", sa.String(200), nullable=True),
        sa.Column("location_city", sa.String(100), nullable=True),
        sa.Column("message", sa.String(500), nullable=True),
        _timestamp("expires_at"),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=True),
        _timestamp("created_at", server_default=True),
        _timestamp("updated_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_match_request_pending_pair",
        "match_request",
        ["requester_id", "recipient_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index(
        "ix_match_request_status_expires_at",
        "match_request",
        ["status", "expires_at"],
    )

    op.create_table(
        "rating_history",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("player_id", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=True),
        sa.Column("rating_before", sa.Integer(), nullable=False),
        sa.Column("rating_after", sa.Integer(), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("provisional", sa.Boolean(), nullable=False),
        _timestamp("recorded_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "player_id", "match_id", name="uq_rating_history_player_id_match_id"
        ),
    )

    op.create_table(
        "court_booking",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("court_id", sa.String(), nullable=False),
        sa.Column("booked_by", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=True),
        _timestamp("starts_at"),
        _timestamp("ends_at"),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        _timestamp("created_at", server_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("starts_at < ends_at", name="ck_court_booking_interval"),
    )
    op.create_index(
        "ix_court_booking_court_id_starts_at",
        "court_booking",
        ["court_id", "starts_at"],
    )

    op.create_table(
        "court_booking_guard",
        sa.Column("court_id", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("court_id"),
    )

    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            "ALTER TABLE court_booking ADD CONSTRAINT ex_court_booking_no_overlap "
            "EXCLUDE USING gist (court_id WITH =, tstzrange(starts_at, ends_at, '[)') WITH &&) "
            "WHERE (status = 'confirmed')"
        )


def downgrade():
    op.drop_table("court_booking_guard")
    op.drop_index("ix_court_booking_court_id_starts_at", table_name="court_booking")
    op.drop_table("court_booking")
    op.drop_table("rating_history")
    op.drop_index("ix_match_request_status_expires_at", table_name="match_request")
    op.drop_index("uq_match_request_pending_pair", table_name="match_request")
    op.drop_table("match_request")
    op.drop_index("ix_match_player2_id", table_name="match")
    op.drop_index("ix_match_player1_id", table_name="match")
    op.drop_table("match")
    op.drop_table("profile")
