"""Create trial and vacancy tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates trial_lists, trial_evaluations and team_vacancies.
How:   Dialect-neutral types so the same revision runs on SQLite and PostgreSQL.

Note: uq_trial_evaluations_list_rank has no ranking > 0 check; rank writes
temporarily park rows on negative values inside a transaction.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_RATING_COLUMNS = (
    "overall_rating",
    "technical_skills",
    "physical_attributes",
    "mental_strength",
    "teamwork",
)


def upgrade() -> None:
    op.create_table(
        "trial_lists",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("coach_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("trial_date", sa.Date(), nullable=True),
        sa.Column("trial_time", sa.String(5), nullable=True, comment="HH:MM"),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("max_players", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_trial_lists"),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'cancelled')",
            name="ck_trial_lists_status",
        ),
        sa.CheckConstraint(
            "max_players IS NULL OR (max_players >= 1 AND max_players <= 100)",
            name="ck_trial_lists_max_players",
        ),
    )
    op.create_index("idx_trial_lists_coach", "trial_lists", ["coach_id"])
    op.create_index("idx_trial_lists_status", "trial_lists", ["status"])
    op.create_index("idx_trial_lists_date", "trial_lists", ["trial_date"])

    op.create_table(
        "trial_evaluations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("trial_list_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("coach_id", sa.Integer(), nullable=False),
        sa.Column("player_name", sa.String(200), nullable=False),
        sa.Column("player_age", sa.Integer(), nullable=True),
        sa.Column("player_position", sa.String(100), nullable=True),
        sa.Column("ranking", sa.Integer(), nullable=False),
        *(sa.Column(column, sa.Integer(), nullable=True) for column in _RATING_COLUMNS),
        sa.Column("private_notes", sa.Text(), nullable=True),
        sa.Column("strengths", sa.String(500), nullable=True),
        sa.Column("areas_for_improvement", sa.String(500), nullable=True),
        sa.Column(
            "recommended_for_team",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'evaluating'")),
        sa.Column(
            "evaluated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_trial_evaluations"),
        sa.ForeignKeyConstraint(
            ["trial_list_id"],
            ["trial_lists.id"],
            name="fk_trial_evaluations_trial_list",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("trial_list_id", "player_id", name="uq_trial_evaluations_list_player"),
        sa.UniqueConstraint("trial_list_id", "ranking", name="uq_trial_evaluations_list_rank"),
        sa.CheckConstraint(
            "status IN ('evaluating', 'approved', 'rejected', 'pending')",
            name="ck_trial_evaluations_status",
        ),
        *(
            sa.CheckConstraint(
                f"{column} IS NULL OR ({column} >= 1 AND {column} <= 10)",
                name=f"ck_trial_evaluations_{column}",
            )
            for column in _RATING_COLUMNS
        ),
    )
    op.create_index("idx_trial_evaluations_player", "trial_evaluations", ["player_id"])
    op.create_index("idx_trial_evaluations_coach", "trial_evaluations", ["coach_id"])

    op.create_table(
        "team_vacancies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("posted_by", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("league", sa.String(200), nullable=True),
        sa.Column("age_group", sa.String(50), nullable=True),
        sa.Column("position", sa.String(100), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_team_vacancies"),
        sa.CheckConstraint(
            "status IN ('active', 'filled', 'closed')",
            name="ck_team_vacancies_status",
        ),
    )
    op.create_index("idx_team_vacancies_status", "team_vacancies", ["status"])


def downgrade() -> None:
    op.drop_index("idx_team_vacancies_status", table_name="team_vacancies")
    op.drop_table("team_vacancies")
    op.drop_index("idx_trial_evaluations_coach", table_name="trial_evaluations")
    op.drop_index("idx_trial_evaluations_player", table_name="trial_evaluations")
    op.drop_table("trial_evaluations")
    op.drop_index("idx_trial_lists_date", table_name="trial_lists")
    op.drop_index("idx_trial_lists_status", table_name="trial_lists")
    op.drop_index("idx_trial_lists_coach", table_name="trial_lists")
    op.drop_table("trial_lists")
