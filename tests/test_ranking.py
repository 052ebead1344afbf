"""
Grassroots Hub Backend — RankedList Unit Tests
================================================

Pure tests, no database. Cover append/move/remove results, the affected sets
they return, and that ranks stay exactly 1..n after every operation.
"""

import random

import pytest

from grassroots.exceptions import InvalidRankError, NotFoundError
from grassroots.ranking import RankChange, RankedItem, RankedList


def make_list(*ids, list_id=1):
    return RankedList(list_id, [RankedItem(i, list_id, r) for r, i in enumerate(ids, start=1)])


def order(ranked):
    return [item.id for item in ranked.ordered()]


class TestConstruction:
    def test_empty_list(self):
        ranked = RankedList(1)
        assert len(ranked) == 0
        assert ranked.ordered() == []
        ranked.check_invariants()

    def test_rejects_item_of_another_list(self):
        with pytest.raises(ValueError):
            RankedList(1, [RankedItem("A", 2, 1)])

    def test_rejects_duplicate_ids(self):
        with pytest.raises(ValueError):
            RankedList(1, [RankedItem("A", 1, 1), RankedItem("A", 1, 2)])

    def test_snapshot_is_copied(self):
        source = [RankedItem("A", 1, 1), RankedItem("B", 1, 2)]
        ranked = RankedList(1, source)
        ranked.move("B", 1)
        assert [i.rank for i in source] == [1, 2]

    def test_check_invariants_detects_gap(self):
        ranked = RankedList(1, [RankedItem("A", 1, 1), RankedItem("B", 1, 3)])
        with pytest.raises(ValueError):
            ranked.check_invariants()

    def test_check_invariants_detects_duplicate_rank(self):
        ranked = RankedList(1, [RankedItem("A", 1, 1), RankedItem("B", 1, 1)])
        with pytest.raises(ValueError):
            ranked.check_invariants()


class TestAppend:
    def test_append_assigns_n_plus_one(self):
        ranked = make_list("A", "B", "C")
        assert ranked.append("D") == 4
        assert order(ranked) == ["A", "B", "C", "D"]
        ranked.check_invariants()

    def test_append_to_empty_list_is_rank_one(self):
        assert RankedList(1).append("A") == 1

    def test_append_duplicate_id_raises(self):
        ranked = make_list("A")
        with pytest.raises(ValueError):
            ranked.append("A")


class TestMove:
    def setup_method(self):
        self.ranked = make_list("A", "B", "C", "D")

    def test_move_up_shifts_between_down(self):
        changes = self.ranked.move("D", 2)
        assert order(self.ranked) == ["A", "D", "B", "C"]
        assert changes == [RankChange("D", 2), RankChange("B", 3), RankChange("C", 4)]

    def test_move_down_shifts_between_up(self):
        changes = self.ranked.move("A", 3)
        assert order(self.ranked) == ["B", "C", "A", "D"]
        assert changes == [RankChange("B", 1), RankChange("C", 2), RankChange("A", 3)]

    def test_move_to_front(self):
        self.ranked.move("C", 1)
        assert order(self.ranked) == ["C", "A", "B", "D"]

    def test_move_to_back(self):
        self.ranked.move("B", 4)
        assert order(self.ranked) == ["A", "C", "D", "B"]

    def test_move_to_same_rank_is_noop(self):
        assert self.ranked.move("B", 2) == []
        assert order(self.ranked) == ["A", "B", "C", "D"]

    def test_affected_set_is_exactly_the_changed_items(self):
        before = self.ranked.ranks()
        changes = self.ranked.move("B", 4)
        after = self.ranked.ranks()
        changed = {item_id for item_id in before if before[item_id] != after[item_id]}
        assert {c.id for c in changes} == changed
        assert "A" not in changed

    @pytest.mark.parametrize("target", [0, -1, 5, 100])
    def test_out_of_range_target_raises_and_changes_nothing(self, target):
        with pytest.raises(InvalidRankError) as exc_info:
            self.ranked.move("A", target)
        assert exc_info.value.context["max_rank"] == 4
        assert order(self.ranked) == ["A", "B", "C", "D"]

    @pytest.mark.parametrize("target", [True, 2.0, "2", None])
    def test_non_integer_target_raises(self, target):
        with pytest.raises(InvalidRankError):
            self.ranked.move("A", target)

    def test_unknown_item_raises_not_found(self):
        with pytest.raises(NotFoundError):
            self.ranked.move("Z", 1)

    def test_move_then_back_restores_order(self):
        self.ranked.move("D", 1)
        self.ranked.move("D", 4)
        assert order(self.ranked) == ["A", "B", "C", "D"]


class TestRemove:
    def test_remove_compacts_following_ranks(self):
        ranked = make_list("A", "B", "C", "D")
        changes = ranked.remove("B")
        assert order(ranked) == ["A", "C", "D"]
        assert changes == [RankChange("C", 2), RankChange("D", 3)]
        ranked.check_invariants()

    def test_remove_last_has_empty_affected_set(self):
        ranked = make_list("A", "B")
        assert ranked.remove("B") == []
        assert order(ranked) == ["A"]

    def test_remove_unknown_raises_not_found(self):
        ranked = make_list("A")
        with pytest.raises(NotFoundError):
            ranked.remove("Z")
        assert len(ranked) == 1

    def test_remove_everything(self):
        ranked = make_list("A", "B", "C")
        for item_id in ("B", "A", "C"):
            ranked.remove(item_id)
        assert len(ranked) == 0


class TestSeedScenario:
    """A, B, C, D → move D to 2 → remove B → append E."""

    def test_full_sequence(self):
        ranked = make_list("A", "B", "C", "D")

        changes = ranked.move("D", 2)
        assert {c.id for c in changes} == {"D", "B", "C"}
        assert order(ranked) == ["A", "D", "B", "C"]

        changes = ranked.remove("B")
        assert changes == [RankChange("C", 3)]
        assert order(ranked) == ["A", "D", "C"]

        assert ranked.append("E") == 4
        assert order(ranked) == ["A", "D", "C", "E"]
        ranked.check_invariants()


class TestRandomizedInvariants:
    def test_dense_ranks_survive_random_operations(self):
        rng = random.Random(20261017)
        ranked = RankedList("scope")
        next_id = 0
        for _ in range(500):
            op = rng.choice(("append", "append", "move", "move", "remove"))
            if op == "append" or len(ranked) == 0:
                next_id += 1
                assert ranked.append(next_id) == len(ranked)
            elif op == "move":
                item = rng.choice(ranked.ordered())
                target = rng.randint(1, len(ranked))
                before = ranked.ranks()
                changes = ranked.move(item.id, target)
                after = ranked.ranks()
                assert {c.id for c in changes} == {
                    i for i in before if before[i] != after[i]
                }
                assert ranked.rank_of(item.id) == target
            else:
                item = rng.choice(ranked.ordered())
                ranked.remove(item.id)
                assert item.id not in ranked
            ranked.check_invariants()
