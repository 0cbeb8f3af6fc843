"""Raft State Management - Core data structures and state for the simulated cluster."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_NODE_IDS = ("S1", "S2", "S3", "S4", "S5")


class RaftInvariantError(RuntimeError):
    """Raised when the algorithm itself breaks a Raft invariant."""


class NodeState(Enum):
    """Enum for node states in Raft."""
    FOLLOWER = "follower"
    CANDIDATE = "candidate"
    LEADER = "leader"


class MessageType(Enum):
    """Kinds of messages exchanged between nodes."""
    REQUEST_VOTE = "request-vote"
    VOTE_GRANTED = "vote-granted"
    VOTE_DENIED = "vote-denied"
    APPEND_ENTRIES = "append-entries"
    APPEND_ACK = "append-ack"
    APPEND_NACK = "append-nack"
    HEARTBEAT = "heartbeat"


@dataclass(frozen=True)
class LogEntry:
    """Represents a log entry in Raft."""
    index: int
    term: int
    command: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "term": self.term, "command": self.command}


@dataclass
class Message:
    """A message travelling between two nodes.

    ``progress`` goes from 0 to 1 as the message crosses the network; it is
    delivered on the tick it reaches 1.
    """
    msg_id: str
    sender: str
    target: str
    type: MessageType
    term: int
    payload: Dict[str, Any] = field(default_factory=dict)
    sent_at: int = 0
    progress: float = 0.0
    ticks_travelled: int = 0

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.payload)
        if "entries" in payload:
            payload["entries"] = [entry.to_dict() for entry in payload["entries"]]
        return {
            "id": self.msg_id,
            "from": self.sender,
            "to": self.target,
            "type": self.type.value,
            "term": self.term,
            "payload": payload,
            "sent_at": self.sent_at,
            "progress": self.progress,
        }


@dataclass
class SimulationConfig:
    """Configuration for the simulated cluster (all times in ticks)."""
    node_ids: Tuple[str, ...] = DEFAULT_NODE_IDS
    election_timeout_min: int = 8
    election_timeout_max: int = 16
    heartbeat_interval: int = 3     # must be << election timeout
    message_travel_ticks: int = 2
    seed: Optional[int] = None

    def __post_init__(self):
        self.node_ids = tuple(self.node_ids)
        if not self.node_ids:
            raise ValueError("cluster needs at least one node")
        if len(set(self.node_ids)) != len(self.node_ids):
            raise ValueError(f"duplicate node ids: {list(self.node_ids)}")
        if self.election_timeout_min < 1 or self.election_timeout_max < self.election_timeout_min:
            raise ValueError("election timeout range must satisfy 1 <= min <= max")
        if self.heartbeat_interval < 1:
            raise ValueError("heartbeat_interval must be positive")
        if self.message_travel_ticks < 1:
            raise ValueError("message_travel_ticks must be positive")

    @property
    def cluster_size(self) -> int:
        return len(self.node_ids)

    @property
    def majority(self) -> int:
        return self.cluster_size // 2 + 1


@dataclass(frozen=True)
class NodeSnapshot:
    """Read-only view of one node at the end of a tick."""
    node_id: str
    state: NodeState
    current_term: int
    voted_for: Optional[str]
    log: Tuple[LogEntry, ...]
    commit_index: int
    last_applied: int
    alive: bool
    election_timer: int
    heartbeat_timer: int
    votes_received: Tuple[str, ...]
    next_index: Tuple[Tuple[str, int], ...]
    match_index: Tuple[Tuple[str, int], ...]
    data: Tuple[Tuple[str, str], ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "state": self.state.value,
            "term": self.current_term,
            "voted_for": self.voted_for,
            "log": [entry.to_dict() for entry in self.log],
            "commit_index": self.commit_index,
            "last_applied": self.last_applied,
            "alive": self.alive,
            "election_timer": self.election_timer,
            "heartbeat_timer": self.heartbeat_timer,
            "votes_received": list(self.votes_received),
            "next_index": dict(self.next_index),
            "match_index": dict(self.match_index),
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class ClusterSnapshot:
    """Read-only view of the whole cluster, used for rendering."""
    tick: int
    nodes: Tuple[NodeSnapshot, ...]
    messages: Tuple[Dict[str, Any], ...]
    partition: Optional[Tuple[Tuple[str, ...], Tuple[str, ...]]]
    leader_id: Optional[str]
    message_stats: Tuple[Tuple[str, int], ...] = ()

    def leaders(self) -> List[NodeSnapshot]:
        return [n for n in self.nodes if n.alive and n.state == NodeState.LEADER]

    def to_dict(self) -> Dict[str, Any]:
        partition = None
        if self.partition is not None:
            partition = {"group_a": list(self.partition[0]), "group_b": list(self.partition[1])}
        return {
            "tick": self.tick,
            "leader_id": self.leader_id,
            "partition": partition,
            "nodes": [node.to_dict() for node in self.nodes],
            "messages": [dict(m) for m in self.messages],
            "message_stats": dict(self.message_stats),
        }
