"""
Grassroots Hub Backend — Team Vacancy Model
=============================================

What:  ORM model for `team_vacancies`, a coach's advert for an open squad place.
Who:   Used by VacancyRepository for creation and proximity search.

Coordinates are optional: a vacancy without latitude/longitude is stored but
never returned by the nearby search.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Float, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from grassroots.database import Base

VACANCY_STATUSES = ("active", "filled", "closed")


class TeamVacancy(Base):
    __tablename__ = "team_vacancies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    posted_by: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    league: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    age_group: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'filled', 'closed')",
            name="ck_team_vacancies_status",
        ),
        Index("idx_team_vacancies_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<TeamVacancy(id={self.id}, title='{self.title}', status='{self.status}')>"
