"""
Grassroots Hub Backend — Repositories
=======================================

Persistence handles bound to one AsyncSession. Services construct them per
unit of work and pass them what they need; repositories never commit.
"""

from grassroots.repositories.trial_repository import TrialRepository
from grassroots.repositories.vacancy_repository import VacancyRepository

__all__ = ["TrialRepository", "VacancyRepository"]
