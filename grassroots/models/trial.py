"""
Grassroots Hub Backend — Trial SQLAlchemy Models
==================================================

What:  ORM models for the `trial_lists` and `trial_evaluations` tables.
Who:   Used by TrialRepository and by Alembic for schema management.

Table Design:
    trial_lists         One coach's trial session (title, date, capacity, status).
    trial_evaluations   One player on a trial list: ratings, notes, and the
                        `ranking` column that RankedList keeps dense.

    uq_trial_evaluations_list_rank (trial_list_id, ranking):
        The store refuses duplicate ranks within a list. Batch rank writes are
        therefore applied in two phases (see TrialRepository.apply_ranks).

    uq_trial_evaluations_list_player (trial_list_id, player_id):
        A player appears at most once per trial list.

Types are dialect-neutral so the models run on both SQLite and PostgreSQL.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grassroots.database import Base

TRIAL_LIST_STATUSES = ("active", "completed", "cancelled")
EVALUATION_STATUSES = ("evaluating", "approved", "rejected", "pending")
RATING_FIELDS = (
    "overall_rating",
    "technical_skills",
    "physical_attributes",
    "mental_strength",
    "teamwork",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrialList(Base):
    """
    A coach's trial session that players are added to and ranked within.

    Lifecycle:
        Created 'active' → coach may mark 'completed' or 'cancelled'.
        Deleting a list deletes its evaluations (ON DELETE CASCADE).
    """

    __tablename__ = "trial_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    coach_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    trial_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # HH:MM, kept as text to avoid TIME handling differences between backends
    trial_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
    max_players: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    evaluations: Mapped[List["TrialEvaluation"]] = relationship(
        back_populates="trial_list",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TrialEvaluation.ranking",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'completed', 'cancelled')",
            name="ck_trial_lists_status",
        ),
        CheckConstraint(
            "max_players IS NULL OR (max_players >= 1 AND max_players <= 100)",
            name="ck_trial_lists_max_players",
        ),
        Index("idx_trial_lists_coach", "coach_id"),
        Index("idx_trial_lists_status", "status"),
        Index("idx_trial_lists_date", "trial_date"),
    )

    def __repr__(self) -> str:
        return f"<TrialList(id={self.id}, coach_id={self.coach_id}, status='{self.status}')>"


class TrialEvaluation(Base):
    """
    One player on a trial list.

    `ranking` is owned by RankedList semantics: assigned n + 1 on insert,
    changed only by move, compacted on remove. Ratings are 1-10 or null.
    """

    __tablename__ = "trial_evaluations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trial_list_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("trial_lists.id", ondelete="CASCADE"),
        nullable=False,
    )
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    coach_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player_name: Mapped[str] = mapped_column(String(200), nullable=False)
    player_age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player_position: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    ranking: Mapped[int] = mapped_column(Integer, nullable=False)

    overall_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    technical_skills: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    physical_attributes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mental_strength: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    teamwork: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    private_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    strengths: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    areas_for_improvement: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    recommended_for_team: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="evaluating",
        server_default=text("'evaluating'"),
    )
    evaluated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    trial_list: Mapped[TrialList] = relationship(back_populates="evaluations")

    __table_args__ = (
        UniqueConstraint("trial_list_id", "player_id", name="uq_trial_evaluations_list_player"),
        UniqueConstraint("trial_list_id", "ranking", name="uq_trial_evaluations_list_rank"),
        CheckConstraint(
            "status IN ('evaluating', 'approved', 'rejected', 'pending')",
            name="ck_trial_evaluations_status",
        ),
        *(
            CheckConstraint(
                f"{column} IS NULL OR ({column} >= 1 AND {column} <= 10)",
                name=f"ck_trial_evaluations_{column}",
            )
            for column in RATING_FIELDS
        ),
        Index("idx_trial_evaluations_player", "player_id"),
        Index("idx_trial_evaluations_coach", "coach_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrialEvaluation(id={self.id}, trial_list_id={self.trial_list_id}, "
            f"ranking={self.ranking})>"
        )
