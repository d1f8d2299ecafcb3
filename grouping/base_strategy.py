"""
base_strategy.py
-----------------
Abstract base class for candidate grouping strategies.

A strategy walks the (chronologically ordered) transactions exactly once.
Each transaction either joins the first compatible group already created
or seeds a new one. Groups are never merged or re-clustered afterwards, so
the result depends on input order; callers get a deterministic result by
passing a stable order.

Shared logic lives here: the GroupArena that records membership, the
single-pass loop and the direction gate. Concrete strategies only
implement:
    - _key_for(): the grouping key of a transaction (or None to skip it)
    - _matches(): whether a transaction may join an existing group
"""

from abc import ABC, abstractmethod
from typing import Any, Iterator, List

from core.models import CandidateGroup, RawTransaction
from core.name_normalizer import NameNormalizer


class GroupArena:
    """
    Ordered sequence of CandidateGroups plus a transaction-id → group index.

    Membership is explicit and auditable: a transaction can be looked up to
    find the one group that owns it.
    """

    def __init__(self):
        self._groups: List[CandidateGroup] = []
        self._index: dict[Any, int] = {}

    def seed(self, key: Any, txn: RawTransaction, name: str) -> CandidateGroup:
        """Creates a new group whose first member is txn."""
        self._check_unassigned(txn)
        group = CandidateGroup(key=key, direction=txn.direction)
        group.append(txn, name)
        self._groups.append(group)
        self._index[txn.id] = len(self._groups) - 1
        return group

    def append(self, group_index: int, txn: RawTransaction, name: str) -> None:
        """Adds txn to an existing group."""
        self._check_unassigned(txn)
        self._groups[group_index].append(txn, name)
        self._index[txn.id] = group_index

    def group_of(self, txn_id: Any) -> CandidateGroup | None:
        idx = self._index.get(txn_id)
        return self._groups[idx] if idx is not None else None

    def _check_unassigned(self, txn: RawTransaction) -> None:
        if txn.id in self._index:
            raise ValueError(f"Transaction {txn.id!r} is already assigned to a group")

    @property
    def groups(self) -> List[CandidateGroup]:
        return list(self._groups)

    def __iter__(self) -> Iterator[CandidateGroup]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def __repr__(self) -> str:
        return f"GroupArena(groups={len(self)}, transactions={len(self._index)})"


class BaseGroupingStrategy(ABC):
    """
    Abstract base for grouping strategies.

    Subclasses implement _key_for() and _matches(). This class handles the
    single pass, first-match-wins assignment and arena bookkeeping.
    """

    name: str = ""

    def __init__(self, normalizer: NameNormalizer | None = None):
        self.normalizer = normalizer or NameNormalizer()

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def group(self, transactions: List[RawTransaction]) -> GroupArena:
        """
        Cluster transactions into candidate groups.

        Args:
            transactions: Validated transactions in the order they should be
                considered (the pipeline passes them oldest first).

        Returns:
            GroupArena holding every group created in this pass.
        """
        arena = GroupArena()

        for txn in transactions:
            name = self.normalizer.normalize(txn.description)
            key = self._key_for(txn, name)
            if key is None:
                continue

            for idx, group in enumerate(arena):
                if group.direction != txn.direction:
                    continue
                if self._matches(group, key, txn):
                    arena.append(idx, txn, name)
                    break
            else:
                arena.seed(key, txn, name)

        return arena

    # -------------------------------------------------------------------------
    # ABSTRACT METHODS: implement in each strategy
    # -------------------------------------------------------------------------

    @abstractmethod
    def _key_for(self, txn: RawTransaction, name: str) -> Any | None:
        """
        Grouping key for a transaction, or None if the transaction cannot
        take part in this strategy's clustering.
        """
        ...

    @abstractmethod
    def _matches(self, group: CandidateGroup, key: Any, txn: RawTransaction) -> bool:
        """Whether a transaction with this key may join the given group."""
        ...
