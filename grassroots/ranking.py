"""
Grassroots Hub Backend — Ranked List
======================================

What:  Dense 1-based ranking over the evaluations of one trial list.
How:   Works on an in-memory snapshot of (item_id, rank) pairs read by the
       repository, computes the new rank of every item an operation touches,
       and hands that affected set back for the caller to persist.
Who:   Used by TrialService for append / move / remove of trial evaluations.
When:  Inside the transaction that read the snapshot, before the write-back.

Invariants (per list):
    1. Ranks in use are exactly {1, ..., n}
    2. No two items share a rank
    3. Order follows insertion unless changed by move()

Shift convention (the only one used anywhere):
    move toward the front (t < r):  t <= x.rank < r  → x.rank + 1
    move toward the back  (t > r):  r < x.rank <= t  → x.rank - 1
    remove at r:                    x.rank > r       → x.rank - 1

RankedList does not own storage. It never writes to the database; the
repository applies the returned affected set atomically.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional

from grassroots.exceptions import InvalidRankError, NotFoundError


@dataclass
class RankedItem:
    """One entry of a ranked scope: opaque id, owning list id, 1-based rank."""

    id: Hashable
    list_id: Hashable
    rank: int


@dataclass(frozen=True)
class RankChange:
    """A single write the caller must persist: item `id` now has `rank`."""

    id: Hashable
    rank: int


class RankedList:
    """
    Invariant-preserving ranking over one scope.

    Construct from the current rows of a scope, call exactly the operations
    the request needs, then persist the returned RankChange list.

    Example:
        ranked = RankedList(list_id=7, items=repo_rows)
        changes = ranked.move(item_id=42, target_rank=1)
        await repo.apply_ranks(changes)
    """

    def __init__(self, list_id: Hashable, items: Optional[Iterable[RankedItem]] = None):
        self.list_id = list_id
        self._items: Dict[Hashable, RankedItem] = {}
        for item in items or ():
            if item.list_id != list_id:
                raise ValueError(
                    f"Item {item.id!r} belongs to list {item.list_id!r}, not {list_id!r}"
                )
            if item.id in self._items:
                raise ValueError(f"Duplicate item id {item.id!r} in list {list_id!r}")
            self._items[item.id] = RankedItem(item.id, item.list_id, item.rank)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: Hashable) -> bool:
        return item_id in self._items

    def rank_of(self, item_id: Hashable) -> int:
        return self._get(item_id).rank

    def ordered(self) -> List[RankedItem]:
        """Items sorted by rank (copies, safe to hand to callers)."""
        return [
            RankedItem(i.id, i.list_id, i.rank)
            for i in sorted(self._items.values(), key=lambda i: i.rank)
        ]

    def ranks(self) -> Dict[Hashable, int]:
        return {item_id: item.rank for item_id, item in self._items.items()}

    # ── Operations ────────────────────────────────────────────────────────

    def append(self, item_id: Hashable) -> int:
        """
        Add a new item at the end of the list.

        Returns:  The assigned rank, always n + 1.
        Raises:   ValueError if the id is already present (programming error,
                  the repository guarantees fresh ids).
        """
        if item_id in self._items:
            raise ValueError(f"Item {item_id!r} is already ranked in list {self.list_id!r}")
        rank = len(self._items) + 1
        self._items[item_id] = RankedItem(item_id, self.list_id, rank)
        return rank

    def move(self, item_id: Hashable, target_rank: int) -> List[RankChange]:
        """
        Reposition an item, shifting the items between its old and new rank.

        Args:
            item_id:     Item currently at rank r.
            target_rank: New rank t, must satisfy 1 <= t <= n.

        Returns:
            Every item whose rank changed, moved item included. Empty when
            t == r.

        Raises:
            NotFoundError:    item_id is not in this list.
            InvalidRankError: t is outside [1, n]. Nothing is changed.
        """
        item = self._get(item_id)
        n = len(self._items)
        if isinstance(target_rank, bool) or not isinstance(target_rank, int):
            raise InvalidRankError(target_rank=target_rank, size=n)
        if target_rank < 1 or target_rank > n:
            raise InvalidRankError(target_rank=target_rank, size=n)

        current = item.rank
        if target_rank == current:
            return []

        changes: List[RankChange] = []
        if target_rank < current:
            for other in self._items.values():
                if target_rank <= other.rank < current:
                    other.rank += 1
                    changes.append(RankChange(other.id, other.rank))
        else:
            for other in self._items.values():
                if current < other.rank <= target_rank:
                    other.rank -= 1
                    changes.append(RankChange(other.id, other.rank))

        item.rank = target_rank
        changes.append(RankChange(item.id, item.rank))
        return sorted(changes, key=lambda c: c.rank)

    def remove(self, item_id: Hashable) -> List[RankChange]:
        """
        Drop an item and compact the ranks after it.

        Returns:  The items that moved up one place (the removed item is not
                  part of the affected set; the caller deletes it).
        Raises:   NotFoundError if item_id is not in this list.
        """
        removed = self._get(item_id)
        del self._items[item_id]

        changes: List[RankChange] = []
        for other in self._items.values():
            if other.rank > removed.rank:
                other.rank -= 1
                changes.append(RankChange(other.id, other.rank))
        return sorted(changes, key=lambda c: c.rank)

    # ── Invariants ────────────────────────────────────────────────────────

    def check_invariants(self) -> None:
        """
        Raise ValueError when ranks are not exactly {1..n}.

        Run on snapshots read from the store: a scope that is already broken
        must not be shifted further.
        """
        ranks = sorted(item.rank for item in self._items.values())
        expected = list(range(1, len(ranks) + 1))
        if ranks != expected:
            raise ValueError(
                f"Ranks of list {self.list_id!r} are not contiguous: {ranks}"
            )

    def _get(self, item_id: Hashable) -> RankedItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise NotFoundError(resource="trial evaluation", resource_id=str(item_id))
