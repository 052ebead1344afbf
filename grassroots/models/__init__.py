"""
Grassroots Hub Backend — ORM Models
=====================================

Importing this package registers every table on Base.metadata
(used by create_all() and by Alembic autogenerate).
"""

from grassroots.models.trial import TrialEvaluation, TrialList
from grassroots.models.vacancy import TeamVacancy

__all__ = ["TrialList", "TrialEvaluation", "TeamVacancy"]
