"""
Grassroots Hub Backend — TrialService Tests
=============================================

Runs TrialService against a real aiosqlite database (see conftest.py), so
rank write-back, the unique (list, ranking) constraint, cascades and the
retry path are exercised for real.
"""

import asyncio
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from tenacity import RetryCallState

from conftest import COACH_ID, OTHER_COACH_ID
from grassroots.config import settings
from grassroots.database import build_engine, build_session_factory
from grassroots.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    DatabaseError,
    InvalidRankError,
    NotFoundError,
    ValidationError,
)
from grassroots.repositories.trial_repository import TrialRepository
from grassroots.schemas.trial import (
    EvaluationUpdateRequest,
    PlayerAddRequest,
    TrialListCreate,
)
from grassroots.services.locks import ScopeLocks
from grassroots.services.trial_service import TrialService


async def ranking_of(service, list_id):
    """[(player_name, ranking)] in display order."""
    detail = await service.get_trial_list(COACH_ID, list_id)
    return [(p.player_name, p.ranking) for p in detail.players]


class TestTrialLists:
    @pytest.mark.asyncio
    async def test_create_and_get(self, trial_service):
        created = await trial_service.create_trial_list(
            COACH_ID,
            TrialListCreate(
                title="  Summer Trial  ",
                trial_date="2026-06-01",
                trial_time="18:30",
                location="Riverside Park",
                max_players=20,
            ),
        )
        detail = await trial_service.get_trial_list(COACH_ID, created.id)
        assert detail.trial_list.title == "Summer Trial"
        assert detail.trial_list.trial_time == "18:30"
        assert detail.trial_list.status == "active"
        assert detail.players == []

    @pytest.mark.asyncio
    async def test_other_coach_cannot_see_list(self, trial_service, seeded_list):
        list_id, _ = seeded_list
        with pytest.raises(NotFoundError):
            await trial_service.get_trial_list(OTHER_COACH_ID, list_id)

    @pytest.mark.asyncio
    async def test_list_summaries_include_counts_and_average(self, trial_service, seeded_list):
        list_id, ids = seeded_list
        await trial_service.update_evaluation(
            COACH_ID, ids["A"], EvaluationUpdateRequest(overall_rating=8)
        )
        await trial_service.update_evaluation(
            COACH_ID, ids["B"], EvaluationUpdateRequest(overall_rating=5)
        )
        empty = await trial_service.create_trial_list(COACH_ID, TrialListCreate(title="Empty"))

        result = await trial_service.list_trial_lists(COACH_ID)
        by_id = {summary.id: summary for summary in result.trial_lists}
        assert result.total == 2
        assert by_id[list_id].player_count == 4
        assert by_id[list_id].average_rating == 6.5
        assert by_id[empty.id].player_count == 0
        assert by_id[empty.id].average_rating is None

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, trial_service, seeded_list):
        assert (await trial_service.list_trial_lists(COACH_ID, status="completed")).total == 0
        assert (await trial_service.list_trial_lists(COACH_ID, status="active")).total == 1

    @pytest.mark.asyncio
    async def test_delete_cascades_to_evaluations(self, trial_service, session_factory, seeded_list):
        list_id, ids = seeded_list
        await trial_service.delete_trial_list(COACH_ID, list_id)

        with pytest.raises(NotFoundError):
            await trial_service.get_trial_list(COACH_ID, list_id)
        async with session_factory() as session:
            assert await TrialRepository(session).load_ranked_items(list_id) == []

    @pytest.mark.asyncio
    async def test_delete_unknown_list_is_not_found(self, trial_service):
        with pytest.raises(NotFoundError):
            await trial_service.delete_trial_list(COACH_ID, 999)


class TestAddPlayer:
    @pytest.mark.asyncio
    async def test_players_are_appended_in_order(self, trial_service, seeded_list):
        list_id, _ = seeded_list
        assert await ranking_of(trial_service, list_id) == [
            ("A", 1), ("B", 2), ("C", 3), ("D", 4),
        ]

    @pytest.mark.asyncio
    async def test_duplicate_player_conflicts(self, trial_service, seeded_list):
        list_id, _ = seeded_list
        with pytest.raises(ConflictError):
            await trial_service.add_player(
                COACH_ID, list_id, PlayerAddRequest(player_id=101, player_name="A again")
            )

    @pytest.mark.asyncio
    async def test_full_list_conflicts(self, trial_service):
        created = await trial_service.create_trial_list(
            COACH_ID, TrialListCreate(title="Tiny", max_players=1)
        )
        await trial_service.add_player(
            COACH_ID, created.id, PlayerAddRequest(player_id=1, player_name="First")
        )
        with pytest.raises(ConflictError) as exc_info:
            await trial_service.add_player(
                COACH_ID, created.id, PlayerAddRequest(player_id=2, player_name="Second")
            )
        assert exc_info.value.context["max_players"] == 1

    @pytest.mark.asyncio
    async def test_add_to_other_coaches_list_is_not_found(self, trial_service, seeded_list):
        list_id, _ = seeded_list
        with pytest.raises(NotFoundError):
            await trial_service.add_player(
                OTHER_COACH_ID, list_id, PlayerAddRequest(player_id=500, player_name="X")
            )


class TestUpdateEvaluation:
    @pytest.mark.asyncio
    async def test_partial_update_keeps_ranking(self, trial_service, seeded_list):
        _, ids = seeded_list
        result = await trial_service.update_evaluation(
            COACH_ID,
            ids["C"],
            EvaluationUpdateRequest(teamwork=9, strengths="Reads the game", status="approved"),
        )
        assert result.teamwork == 9
        assert result.strengths == "Reads the game"
        assert result.status == "approved"
        assert result.ranking == 3
        assert result.overall_rating is None

    @pytest.mark.asyncio
    async def test_empty_update_is_rejected(self, trial_service, seeded_list):
        _, ids = seeded_list
        with pytest.raises(ValidationError):
            await trial_service.update_evaluation(COACH_ID, ids["A"], EvaluationUpdateRequest())

    @pytest.mark.asyncio
    async def test_other_coach_cannot_update(self, trial_service, seeded_list):
        _, ids = seeded_list
        with pytest.raises(NotFoundError):
            await trial_service.update_evaluation(
                OTHER_COACH_ID, ids["A"], EvaluationUpdateRequest(teamwork=3)
            )


class TestMoveAndRemove:
    @pytest.mark.asyncio
    async def test_seed_scenario_end_to_end(self, trial_service, seeded_list):
        list_id, ids = seeded_list

        moved = await trial_service.move_evaluation(COACH_ID, ids["D"], 2)
        assert {(c.id, c.ranking) for c in moved.affected} == {
            (ids["D"], 2), (ids["B"], 3), (ids["C"], 4),
        }
        assert await ranking_of(trial_service, list_id) == [
            ("A", 1), ("D", 2), ("B", 3), ("C", 4),
        ]

        removed = await trial_service.remove_evaluation(COACH_ID, ids["B"])
        assert [(c.id, c.ranking) for c in removed.affected] == [(ids["C"], 3)]

        added = await trial_service.add_player(
            COACH_ID, list_id, PlayerAddRequest(player_id=105, player_name="E")
        )
        assert added.ranking == 4
        assert await ranking_of(trial_service, list_id) == [
            ("A", 1), ("D", 2), ("C", 3), ("E", 4),
        ]

    @pytest.mark.asyncio
    async def test_move_down(self, trial_service, seeded_list):
        list_id, ids = seeded_list
        await trial_service.move_evaluation(COACH_ID, ids["A"], 4)
        assert await ranking_of(trial_service, list_id) == [
            ("B", 1), ("C", 2), ("D", 3), ("A", 4),
        ]

    @pytest.mark.asyncio
    async def test_noop_move_reports_no_changes(self, trial_service, seeded_list):
        _, ids = seeded_list
        result = await trial_service.move_evaluation(COACH_ID, ids["B"], 2)
        assert result.affected == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [0, 5])
    async def test_out_of_range_move_changes_nothing(self, trial_service, seeded_list, target):
        list_id, ids = seeded_list
        with pytest.raises(InvalidRankError):
            await trial_service.move_evaluation(COACH_ID, ids["A"], target)
        assert await ranking_of(trial_service, list_id) == [
            ("A", 1), ("B", 2), ("C", 3), ("D", 4),
        ]

    @pytest.mark.asyncio
    async def test_move_unknown_evaluation(self, trial_service, seeded_list):
        with pytest.raises(NotFoundError):
            await trial_service.move_evaluation(COACH_ID, 9999, 1)

    @pytest.mark.asyncio
    async def test_remove_unknown_evaluation(self, trial_service, seeded_list):
        with pytest.raises(NotFoundError):
            await trial_service.remove_evaluation(COACH_ID, 9999)

    @pytest.mark.asyncio
    async def test_other_coach_cannot_move(self, trial_service, seeded_list):
        _, ids = seeded_list
        with pytest.raises(NotFoundError):
            await trial_service.move_evaluation(OTHER_COACH_ID, ids["A"], 2)

    @pytest.mark.asyncio
    async def test_concurrent_moves_keep_ranks_dense(self, trial_service, seeded_list):
        list_id, ids = seeded_list
        await asyncio.gather(
            trial_service.move_evaluation(COACH_ID, ids["D"], 1),
            trial_service.move_evaluation(COACH_ID, ids["A"], 4),
            trial_service.move_evaluation(COACH_ID, ids["B"], 3),
            trial_service.move_evaluation(COACH_ID, ids["C"], 2),
        )
        ranking = await ranking_of(trial_service, list_id)
        assert sorted(rank for _, rank in ranking) == [1, 2, 3, 4]
        assert sorted(name for name, _ in ranking) == ["A", "B", "C", "D"]
        assert len(trial_service.locks) == 0

    @pytest.mark.asyncio
    async def test_concurrent_removes_compact_fully(self, trial_service, seeded_list):
        list_id, ids = seeded_list
        await asyncio.gather(
            trial_service.remove_evaluation(COACH_ID, ids["A"]),
            trial_service.remove_evaluation(COACH_ID, ids["C"]),
        )
        assert await ranking_of(trial_service, list_id) == [("B", 1), ("D", 2)]


class TestCrossWorkerSerialization:
    """Two services with their own engines and locks model two uvicorn workers."""

    @pytest.mark.asyncio
    async def test_removes_from_two_workers_keep_ranks_dense(
        self, trial_service, db_engine, seeded_list
    ):
        list_id, ids = seeded_list
        engine2 = build_engine(db_engine.url.render_as_string(hide_password=False))
        worker2 = TrialService(build_session_factory(engine2), ScopeLocks())
        snapshot_taken = asyncio.Event()
        real_load = TrialRepository.load_ranked_items

        async def slow_load(self, *args, **kwargs):
            items = await real_load(self, *args, **kwargs)
            if self.session.bind is engine2 and not snapshot_taken.is_set():
                # Hold worker 2's transaction open after its read
                snapshot_taken.set()
                await asyncio.sleep(0.2)
            return items

        async def remove_b_after_worker2_snapshot():
            await snapshot_taken.wait()
            return await trial_service.remove_evaluation(COACH_ID, ids["B"])

        try:
            with patch.object(TrialRepository, "load_ranked_items", slow_load):
                await asyncio.gather(
                    worker2.remove_evaluation(COACH_ID, ids["C"]),
                    remove_b_after_worker2_snapshot(),
                )
        finally:
            await engine2.dispose()

        assert snapshot_taken.is_set()
        assert await ranking_of(trial_service, list_id) == [("A", 1), ("D", 2)]

    @pytest.mark.asyncio
    async def test_moves_from_two_workers_keep_ranks_dense(
        self, trial_service, db_engine, seeded_list
    ):
        list_id, ids = seeded_list
        engine2 = build_engine(db_engine.url.render_as_string(hide_password=False))
        worker2 = TrialService(build_session_factory(engine2), ScopeLocks())
        try:
            await asyncio.gather(
                worker2.move_evaluation(COACH_ID, ids["D"], 1),
                trial_service.move_evaluation(COACH_ID, ids["A"], 3),
                worker2.remove_evaluation(COACH_ID, ids["B"]),
                trial_service.move_evaluation(COACH_ID, ids["C"], 1),
            )
        finally:
            await engine2.dispose()

        ranking = await ranking_of(trial_service, list_id)
        assert sorted(rank for _, rank in ranking) == [1, 2, 3]
        assert sorted(name for name, _ in ranking) == ["A", "C", "D"]


class TestConflictHandling:
    @pytest.mark.asyncio
    async def test_lock_timeout_is_retried_then_succeeds(self, trial_service, seeded_list):
        list_id, ids = seeded_list
        real_lock_list = TrialRepository.lock_list
        calls = {"n": 0}

        async def flaky_lock_list(self, *args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return await real_lock_list(self, *args, **kwargs)

        with patch.object(TrialRepository, "lock_list", flaky_lock_list):
            result = await trial_service.move_evaluation(COACH_ID, ids["D"], 1)

        assert calls["n"] == 2
        assert result.ranking == 1
        assert (await ranking_of(trial_service, list_id))[0] == ("D", 1)

    @pytest.mark.asyncio
    async def test_conflict_surfaces_after_retries(self, trial_service, seeded_list):
        list_id, ids = seeded_list

        async def always_locked(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        with patch.object(TrialRepository, "lock_list", always_locked):
            with pytest.raises(ConcurrencyConflictError) as exc_info:
                await trial_service.remove_evaluation(COACH_ID, ids["A"])

        assert exc_info.value.list_id == list_id
        assert len(await ranking_of(trial_service, list_id)) == 4

    @pytest.mark.asyncio
    async def test_failed_write_back_rolls_back_everything(self, trial_service, seeded_list):
        list_id, ids = seeded_list

        async def broken_apply(self, changes):
            raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

        with patch.object(TrialRepository, "apply_ranks", broken_apply):
            with pytest.raises(DatabaseError):
                await trial_service.remove_evaluation(COACH_ID, ids["B"])

        # The delete ran before the failure and was rolled back with it
        assert await ranking_of(trial_service, list_id) == [
            ("A", 1), ("B", 2), ("C", 3), ("D", 4),
        ]

    @pytest.mark.asyncio
    async def test_corrupt_ranks_are_not_shifted(self, trial_service, session_factory, seeded_list):
        list_id, ids = seeded_list
        async with session_factory() as session:
            async with session.begin():
                evaluation = await TrialRepository(session).get_evaluation(ids["D"], COACH_ID)
                evaluation.ranking = 9

        with pytest.raises(DatabaseError):
            await trial_service.move_evaluation(COACH_ID, ids["A"], 2)

    def test_retry_wait_stays_within_configured_bounds(self):
        retrying = TrialService._run_unit_of_work.retry
        ceiling = (settings.retry_max_wait_ms + settings.retry_min_wait_ms) / 1000
        for attempt in range(1, 8):
            state = RetryCallState(retrying, None, (), {})
            state.attempt_number = attempt
            assert 0 <= retrying.wait(state) <= ceiling
