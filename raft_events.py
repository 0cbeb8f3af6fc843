"""
Raft Events Module
Domain events emitted by the engine, one list per tick.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventType(Enum):
    ELECTION_STARTED = "ElectionStarted"
    VOTE_GRANTED = "VoteGranted"
    LEADER_ELECTED = "LeaderElected"
    STEPPED_DOWN = "SteppedDown"
    ENTRY_REPLICATED = "EntryReplicated"
    ENTRY_COMMITTED = "EntryCommitted"
    NODE_KILLED = "NodeKilled"
    NODE_REVIVED = "NodeRevived"
    PARTITION_FORMED = "PartitionFormed"
    PARTITION_HEALED = "PartitionHealed"
    CLIENT_REQUEST_ACCEPTED = "ClientRequestAccepted"
    CLIENT_REQUEST_REJECTED = "ClientRequestRejected"


# Event types reported at WARNING level
FAILURE_EVENTS = {
    EventType.NODE_KILLED,
    EventType.PARTITION_FORMED,
    EventType.CLIENT_REQUEST_REJECTED,
}


@dataclass(frozen=True)
class Event:
    """A single domain event. ``data`` holds the type-specific fields."""
    type: EventType
    tick: int
    data: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def describe(self) -> str:
        """One-line human readable summary."""
        d = self.data
        t = self.type
        if t == EventType.ELECTION_STARTED:
            return f"{d['node']} started election for term {d['term']}"
        if t == EventType.VOTE_GRANTED:
            return f"{d['from']} voted for {d['to']} in term {d['term']}"
        if t == EventType.LEADER_ELECTED:
            return f"{d['node']} became leader for term {d['term']}"
        if t == EventType.STEPPED_DOWN:
            return f"{d['node']} stepped down: discovered term {d['new_term']}"
        if t == EventType.ENTRY_REPLICATED:
            indices = ",".join(str(i) for i in d["indices"])
            return f"{d['leader']} replicated entry [{indices}] to {d['follower']}"
        if t == EventType.ENTRY_COMMITTED:
            return f"Entry [{d['index']}] committed (replicated to majority)"
        if t == EventType.NODE_KILLED:
            return f"{d['node']} killed"
        if t == EventType.NODE_REVIVED:
            return f"{d['node']} revived"
        if t == EventType.PARTITION_FORMED:
            return f"Network partitioned: [{','.join(d['group_a'])}] | [{','.join(d['group_b'])}]"
        if t == EventType.PARTITION_HEALED:
            return "Network partition healed"
        if t == EventType.CLIENT_REQUEST_ACCEPTED:
            return f"Client request: {d['command']} -> {d['leader']} (index {d['index']})"
        if t == EventType.CLIENT_REQUEST_REJECTED:
            return f"Client request rejected: {d['reason']}"
        return f"{t.value} {d}"

    def to_dict(self) -> Dict[str, Any]:
        data = {k: list(v) if isinstance(v, (tuple, set, frozenset)) else v for k, v in self.data.items()}
        return {"type": self.type.value, "tick": self.tick, "data": data}
