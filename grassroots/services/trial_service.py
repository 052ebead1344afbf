"""
Grassroots Hub Backend — Trial Service
========================================

What:  Business logic for trial lists and the ranked players on them.
How:   Every mutation is one unit of work:
           per-list asyncio lock
           └── transaction (session.begin())
               ├── lock the trial_lists row
               ├── read the (id, rank) snapshot
               ├── RankedList computes the affected set
               └── repository writes it back (two-phase batch)
       Commit makes all of it visible at once; any exception rolls all of it
       back.
Who:   One instance per process (trial_service below), injected into the
       trial routes through get_trial_service().

Conflict handling:
    A lock timeout, deadlock, serialization failure or duplicate-rank
    violation from the database means another writer raced on the list.
    It becomes ConcurrencyConflictError and tenacity re-runs the WHOLE unit
    of work (fresh session, fresh snapshot, fresh computation). Writes of a
    failed attempt are never replayed. After the last attempt the error
    reaches the client as 409.

Ownership:
    A coach only sees their own lists and evaluations. Anything else is
    reported as not found.
"""

import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from grassroots.config import settings
from grassroots.database import async_session_factory
from grassroots.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    DatabaseError,
    GrassrootsError,
    ValidationError,
)
from grassroots.models.trial import TrialEvaluation, TrialList
from grassroots.ranking import RankChange, RankedList
from grassroots.repositories.trial_repository import TrialRepository
from grassroots.schemas.common import CreatedResponse, MessageResponse
from grassroots.schemas.trial import (
    EvaluationRemovedResponse,
    EvaluationResponse,
    EvaluationUpdateRequest,
    PlayerAddedResponse,
    PlayerAddRequest,
    RankChangeResponse,
    RankingUpdateResponse,
    TrialListCreate,
    TrialListDetailResponse,
    TrialListResponse,
    TrialListsResponse,
    TrialListSummary,
)
from grassroots.services.locks import ScopeLocks

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATEs that mean "another transaction got in the way"
_CONFLICT_SQLSTATES = {
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available (lock_timeout)
}
_SQLITE_CONFLICT_MARKERS = ("database is locked", "database table is locked")


def _is_concurrency_failure(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    message = str(orig).lower()
    if any(marker in message for marker in _SQLITE_CONFLICT_MARKERS):
        return True
    # A racing writer that slipped past the row lock surfaces as a duplicate rank
    return isinstance(exc, IntegrityError) and (
        "uq_trial_evaluations_list_rank" in message
        or "trial_evaluations.ranking" in message
    )


def _is_duplicate_player(exc: DBAPIError) -> bool:
    message = str(exc.orig).lower()
    return isinstance(exc, IntegrityError) and (
        "uq_trial_evaluations_list_player" in message
        or "trial_evaluations.player_id" in message
    )


def _changes_response(changes: List[RankChange]) -> List[RankChangeResponse]:
    return [RankChangeResponse(id=c.id, ranking=c.rank) for c in changes]


class TrialService:
    """
    Trial list and evaluation operations for coaches.

    Args:
        session_factory: Creates the AsyncSession of each unit of work.
        locks:           Per-list lock registry (a fresh one if omitted).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: Optional[ScopeLocks] = None,
    ):
        self._session_factory = session_factory
        self.locks = locks or ScopeLocks()

    # ══════════════════════════════════════════════════════════════════════
    # Unit-of-work plumbing
    # ══════════════════════════════════════════════════════════════════════

    async def _transaction(self, work: Callable[[TrialRepository], Awaitable[T]]) -> T:
        """Run work that does not touch rankings in its own transaction."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await work(TrialRepository(session))
        except GrassrootsError:
            raise
        except DBAPIError as e:
            logger.error("Database error in trial transaction: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

    async def _mutate(self, list_id: int, work: Callable[[TrialRepository], Awaitable[T]]) -> T:
        """Run a mutation of `list_id` under its scope lock, retried on conflict."""
        async with self.locks.hold(list_id):
            return await self._run_unit_of_work(list_id, work)

    @retry(
        retry=retry_if_exception_type(ConcurrencyConflictError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_min_wait_ms / 1000,
            max=settings.retry_max_wait_ms / 1000,
        )
        + wait_random(0, settings.retry_min_wait_ms / 1000),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _run_unit_of_work(
        self,
        list_id: int,
        work: Callable[[TrialRepository], Awaitable[T]],
    ) -> T:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await work(TrialRepository(session))
        except GrassrootsError:
            raise
        except DBAPIError as e:
            if _is_concurrency_failure(e):
                logger.warning("Concurrent mutation on trial list %s: %s", list_id, str(e.orig))
                raise ConcurrencyConflictError(list_id=list_id) from e
            if _is_duplicate_player(e):
                raise ConflictError(
                    message="Player already exists in this trial list",
                    context={"trial_list_id": list_id},
                ) from e
            logger.error("Database error mutating trial list %s: %s", list_id, str(e))
            raise DatabaseError(
                context={"trial_list_id": list_id, "error_type": type(e).__name__},
            ) from e

    async def _snapshot(self, repo: TrialRepository, list_id: int) -> RankedList:
        ranked = RankedList(list_id, await repo.load_ranked_items(list_id))
        try:
            ranked.check_invariants()
        except ValueError as e:
            logger.error("Refusing to re-rank trial list %s: %s", list_id, str(e))
            raise DatabaseError(
                message="The ranking of this trial list is inconsistent. Please contact support.",
                context={"trial_list_id": list_id},
            ) from e
        return ranked

    async def _scope_of(self, coach_id: int, evaluation_id: int) -> int:
        async def work(repo: TrialRepository) -> int:
            evaluation = await repo.get_evaluation(evaluation_id, coach_id)
            return evaluation.trial_list_id

        return await self._transaction(work)

    # ══════════════════════════════════════════════════════════════════════
    # Trial lists
    # ══════════════════════════════════════════════════════════════════════

    async def create_trial_list(self, coach_id: int, payload: TrialListCreate) -> CreatedResponse:
        trial_list = await self._transaction(
            lambda repo: repo.add_list(TrialList(coach_id=coach_id, **payload.model_dump()))
        )
        logger.info("Coach %s created trial list %s", coach_id, trial_list.id)
        return CreatedResponse(message="Trial list created successfully", id=trial_list.id)

    async def list_trial_lists(
        self,
        coach_id: int,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> TrialListsResponse:
        rows = await self._transaction(
            lambda repo: repo.list_summaries(coach_id, status=status, limit=limit, offset=offset)
        )
        summaries = [
            TrialListSummary(
                **TrialListResponse.model_validate(trial_list).model_dump(),
                player_count=count,
                average_rating=round(avg, 2) if avg is not None else None,
            )
            for trial_list, count, avg in rows
        ]
        return TrialListsResponse(trial_lists=summaries, total=len(summaries))

    async def get_trial_list(self, coach_id: int, list_id: int) -> TrialListDetailResponse:
        async def work(repo: TrialRepository) -> TrialListDetailResponse:
            trial_list = await repo.get_list(list_id, coach_id)
            players = await repo.list_evaluations(list_id)
            return TrialListDetailResponse(
                trial_list=TrialListResponse.model_validate(trial_list),
                players=[EvaluationResponse.model_validate(p) for p in players],
            )

        return await self._transaction(work)

    async def delete_trial_list(self, coach_id: int, list_id: int) -> MessageResponse:
        async def work(repo: TrialRepository) -> None:
            trial_list = await repo.lock_list(list_id, coach_id)
            await repo.delete_list(trial_list)

        await self._mutate(list_id, work)
        logger.info("Coach %s deleted trial list %s", coach_id, list_id)
        return MessageResponse(message="Trial list deleted successfully")

    # ══════════════════════════════════════════════════════════════════════
    # Evaluations (ranked items)
    # ══════════════════════════════════════════════════════════════════════

    async def add_player(
        self,
        coach_id: int,
        list_id: int,
        payload: PlayerAddRequest,
    ) -> PlayerAddedResponse:
        """
        Append a player to the end of a trial list (rank n + 1).

        Raises:
            NotFoundError:  list missing or owned by another coach
            ConflictError:  player already on the list, or list at max_players
        """

        async def work(repo: TrialRepository) -> PlayerAddedResponse:
            trial_list = await repo.lock_list(list_id, coach_id)
            if await repo.find_player(list_id, payload.player_id) is not None:
                raise ConflictError(
                    message="Player already exists in this trial list",
                    context={"trial_list_id": list_id, "player_id": payload.player_id},
                )

            ranked = await self._snapshot(repo, list_id)
            if trial_list.max_players is not None and len(ranked) >= trial_list.max_players:
                raise ConflictError(
                    message=f"This trial list is full ({trial_list.max_players} players)",
                    context={"trial_list_id": list_id, "max_players": trial_list.max_players},
                )

            # Row id is only known after insert; the player id is unique per list
            ranking = ranked.append(("player", payload.player_id))
            evaluation = await repo.add_evaluation(
                TrialEvaluation(
                    trial_list_id=list_id,
                    coach_id=coach_id,
                    ranking=ranking,
                    **payload.model_dump(),
                )
            )
            return PlayerAddedResponse(evaluation_id=evaluation.id, ranking=ranking)

        result = await self._mutate(list_id, work)
        logger.info(
            "Player %s added to trial list %s at rank %d",
            payload.player_id, list_id, result.ranking,
        )
        return result

    async def update_evaluation(
        self,
        coach_id: int,
        evaluation_id: int,
        payload: EvaluationUpdateRequest,
    ) -> EvaluationResponse:
        """Partial update of ratings, notes and status. Ranking is untouched."""
        fields = payload.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError(message="No fields to update")

        async def work(repo: TrialRepository) -> EvaluationResponse:
            evaluation = await repo.get_evaluation(evaluation_id, coach_id)
            await repo.update_evaluation(evaluation, fields)
            return EvaluationResponse.model_validate(evaluation)

        result = await self._transaction(work)
        logger.info("Evaluation %s updated (%s)", evaluation_id, ", ".join(sorted(fields)))
        return result

    async def move_evaluation(
        self,
        coach_id: int,
        evaluation_id: int,
        new_ranking: int,
    ) -> RankingUpdateResponse:
        """
        Move an evaluation to `new_ranking`, shifting the players in between.

        Raises:
            NotFoundError:            evaluation missing or another coach's
            InvalidRankError:         new_ranking outside [1, n]
            ConcurrencyConflictError: retries exhausted
        """
        list_id = await self._scope_of(coach_id, evaluation_id)

        async def work(repo: TrialRepository) -> List[RankChange]:
            await repo.lock_list(list_id, coach_id)
            ranked = await self._snapshot(repo, list_id)
            changes = ranked.move(evaluation_id, new_ranking)
            await repo.apply_ranks(changes)
            return changes

        changes = await self._mutate(list_id, work)
        if not changes:
            return RankingUpdateResponse(
                message="No ranking change needed",
                evaluation_id=evaluation_id,
                ranking=new_ranking,
                affected=[],
            )

        logger.info(
            "Evaluation %s moved to rank %d in trial list %s (%d rows shifted)",
            evaluation_id, new_ranking, list_id, len(changes),
        )
        return RankingUpdateResponse(
            message="Player ranking updated successfully",
            evaluation_id=evaluation_id,
            ranking=new_ranking,
            affected=_changes_response(changes),
        )

    async def remove_evaluation(self, coach_id: int, evaluation_id: int) -> EvaluationRemovedResponse:
        """Remove a player from their trial list and close the gap behind them."""
        list_id = await self._scope_of(coach_id, evaluation_id)

        async def work(repo: TrialRepository) -> List[RankChange]:
            await repo.lock_list(list_id, coach_id)
            ranked = await self._snapshot(repo, list_id)
            changes = ranked.remove(evaluation_id)
            await repo.delete_evaluation(evaluation_id)
            await repo.apply_ranks(changes)
            return changes

        changes = await self._mutate(list_id, work)
        logger.info(
            "Evaluation %s removed from trial list %s (%d rows compacted)",
            evaluation_id, list_id, len(changes),
        )
        return EvaluationRemovedResponse(affected=_changes_response(changes))


# ── Module-level singleton ────────────────────────────────────────────────
# One instance per process, so every request shares the same per-list locks.
trial_service = TrialService(async_session_factory)


def get_trial_service() -> TrialService:
    """FastAPI dependency; tests override it with a service bound to their engine."""
    return trial_service
