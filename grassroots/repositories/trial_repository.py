"""
Grassroots Hub Backend — Trial Repository
===========================================

What:  Persistence handle for trial lists and evaluations, bound to one
       AsyncSession (one unit of work).
Why:   Keeps SQL out of the service and the ranking logic. The service asks
       for a rank snapshot, RankedList computes the changes, and the
       repository writes them back as one batch.
Who:   Constructed by TrialService inside each transaction.

Rank write-back (apply_ranks):
    trial_evaluations has UNIQUE (trial_list_id, ranking). Rewriting ranks
    row by row would collide mid-batch (B → 3 while C still holds 3), so the
    batch runs in two phases inside the caller's transaction:
        1. park every affected row on -new_rank (negatives never collide
           with live ranks or with each other)
        2. write the final new_rank values
    Both phases commit or roll back together with the rest of the unit of work.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import bindparam, delete, func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from grassroots.config import settings
from grassroots.exceptions import NotFoundError
from grassroots.models.trial import TrialEvaluation, TrialList
from grassroots.ranking import RankChange, RankedItem

logger = logging.getLogger(__name__)

_evaluations = TrialEvaluation.__table__

# Core executemany statement for the batch rank write-back
_RANK_UPDATE = (
    update(_evaluations)
    .where(_evaluations.c.id == bindparam("b_id"))
    .values(ranking=bindparam("b_ranking"), updated_at=bindparam("b_updated_at"))
)


class TrialRepository:
    """
    Queries and writes for trial lists and evaluations within one session.

    The repository never commits. The caller owns the transaction, so a
    failure anywhere in a ranking operation rolls back every write.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    # ── Trial lists ───────────────────────────────────────────────────────

    async def add_list(self, trial_list: TrialList) -> TrialList:
        self.session.add(trial_list)
        await self.session.flush()
        return trial_list

    async def get_list(self, list_id: int, coach_id: int) -> TrialList:
        result = await self.session.execute(
            select(TrialList).where(TrialList.id == list_id, TrialList.coach_id == coach_id)
        )
        trial_list = result.scalar_one_or_none()
        if trial_list is None:
            raise NotFoundError(resource="trial list", resource_id=str(list_id))
        return trial_list

    async def lock_list(self, list_id: int, coach_id: int) -> TrialList:
        """
        Load a trial list and take the row lock that serializes its ranking.

        PostgreSQL: SELECT ... FOR UPDATE bounded by lock_timeout, so a stuck
        writer surfaces as a lock_not_available error (→ conflict → retry).
        SQLite: FOR UPDATE is not rendered. Every transaction there opens
        with BEGIN IMMEDIATE (see database.build_engine), so this read and
        the snapshot after it already run under the database writer lock.
        """
        if self.dialect == "postgresql":
            await self.session.execute(
                text(f"SET LOCAL lock_timeout = '{int(settings.db_lock_timeout)}s'")
            )
        result = await self.session.execute(
            select(TrialList)
            .where(TrialList.id == list_id, TrialList.coach_id == coach_id)
            .with_for_update()
        )
        trial_list = result.scalar_one_or_none()
        if trial_list is None:
            raise NotFoundError(resource="trial list", resource_id=str(list_id))
        return trial_list

    async def list_summaries(
        self,
        coach_id: int,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Tuple[TrialList, int, Optional[float]]]:
        """
        Coach's trial lists, newest first, with player count and mean rating.

        Returns:
            (trial_list, player_count, average_overall_rating) tuples.
        """
        query = (
            select(
                TrialList,
                func.count(TrialEvaluation.id),
                func.avg(TrialEvaluation.overall_rating),
            )
            .outerjoin(TrialEvaluation, TrialEvaluation.trial_list_id == TrialList.id)
            .where(TrialList.coach_id == coach_id)
        )
        if status:
            query = query.where(TrialList.status == status)
        query = (
            query.group_by(TrialList.id)
            .order_by(TrialList.created_at.desc(), TrialList.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return [
            (row[0], int(row[1] or 0), float(row[2]) if row[2] is not None else None)
            for row in result.all()
        ]

    async def delete_list(self, trial_list: TrialList) -> None:
        await self.session.delete(trial_list)
        await self.session.flush()

    # ── Evaluations ───────────────────────────────────────────────────────

    async def get_evaluation(self, evaluation_id: int, coach_id: int) -> TrialEvaluation:
        result = await self.session.execute(
            select(TrialEvaluation)
            .where(TrialEvaluation.id == evaluation_id, TrialEvaluation.coach_id == coach_id)
            .execution_options(populate_existing=True)
        )
        evaluation = result.scalar_one_or_none()
        if evaluation is None:
            raise NotFoundError(resource="trial evaluation", resource_id=str(evaluation_id))
        return evaluation

    async def find_player(self, list_id: int, player_id: int) -> Optional[int]:
        result = await self.session.execute(
            select(TrialEvaluation.id).where(
                TrialEvaluation.trial_list_id == list_id,
                TrialEvaluation.player_id == player_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_evaluations(self, list_id: int) -> List[TrialEvaluation]:
        """Players of a list in display order: ranking, then best rated, then newest."""
        result = await self.session.execute(
            select(TrialEvaluation)
            .where(TrialEvaluation.trial_list_id == list_id)
            .order_by(
                TrialEvaluation.ranking.asc(),
                TrialEvaluation.overall_rating.desc(),
                TrialEvaluation.evaluated_at.desc(),
            )
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def add_evaluation(self, evaluation: TrialEvaluation) -> TrialEvaluation:
        self.session.add(evaluation)
        await self.session.flush()
        return evaluation

    async def update_evaluation(self, evaluation: TrialEvaluation, fields: Dict[str, Any]) -> TrialEvaluation:
        for name, value in fields.items():
            setattr(evaluation, name, value)
        evaluation.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return evaluation

    async def delete_evaluation(self, evaluation_id: int) -> None:
        await self.session.execute(
            delete(TrialEvaluation)
            .where(TrialEvaluation.id == evaluation_id)
            .execution_options(synchronize_session="fetch")
        )

    # ── Ranking snapshot & write-back ─────────────────────────────────────

    async def load_ranked_items(self, list_id: int) -> List[RankedItem]:
        """Current (id, rank) pairs of a list, ordered by rank."""
        result = await self.session.execute(
            select(TrialEvaluation.id, TrialEvaluation.ranking)
            .where(TrialEvaluation.trial_list_id == list_id)
            .order_by(TrialEvaluation.ranking.asc())
        )
        return [RankedItem(id=row.id, list_id=list_id, rank=row.ranking) for row in result.all()]

    async def apply_ranks(self, changes: Sequence[RankChange]) -> None:
        """
        Persist an affected set in two phases (see module docstring).

        No-op for an empty affected set.
        """
        if not changes:
            return
        now = datetime.now(timezone.utc)
        await self._execute_rank_batch((c.id, -c.rank) for c in changes)
        await self._execute_rank_batch(((c.id, c.rank) for c in changes), updated_at=now)
        logger.debug("Applied %d rank changes", len(changes))

    async def _execute_rank_batch(
        self,
        pairs: Iterable[Tuple[Any, int]],
        updated_at: Optional[datetime] = None,
    ) -> None:
        stamp = updated_at or datetime.now(timezone.utc)
        params = [
            {"b_id": item_id, "b_ranking": rank, "b_updated_at": stamp}
            for item_id, rank in pairs
        ]
        await self.session.execute(_RANK_UPDATE, params)
