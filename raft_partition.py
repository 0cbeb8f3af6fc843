"""Network partition model - gates which pairs of nodes can talk."""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Partition:
    """Bisection of the cluster; nodes only reach peers in their own group."""
    group_a: FrozenSet[str]
    group_b: FrozenSet[str]

    @classmethod
    def split(cls, group_a: Iterable[str], node_ids: Sequence[str]) -> "Partition":
        """Build a partition from group A; every other node lands in group B."""
        group_a = frozenset(group_a)
        unknown = group_a - set(node_ids)
        if unknown:
            raise ValueError(f"unknown node ids in partition: {sorted(unknown)}")
        group_b = frozenset(node_ids) - group_a
        if not group_a or not group_b:
            raise ValueError("both sides of a partition must contain at least one node")
        return cls(group_a, group_b)

    def can_communicate(self, sender: str, target: str) -> bool:
        return (sender in self.group_a and target in self.group_a) or (
            sender in self.group_b and target in self.group_b
        )

    def ordered(self, node_ids: Sequence[str]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Both groups as tuples in cluster order."""
        return (
            tuple(n for n in node_ids if n in self.group_a),
            tuple(n for n in node_ids if n in self.group_b),
        )


def can_communicate(sender: str, target: str, partition: Optional[Partition]) -> bool:
    """Full connectivity when there is no partition."""
    if partition is None:
        return True
    return partition.can_communicate(sender, target)
