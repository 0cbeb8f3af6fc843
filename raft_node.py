"""
Raft Consensus Algorithm - Node Implementation
Holds one replica's state and routes delivered messages to the election
and replication managers.
"""

import logging
from typing import Dict, List, Optional, Set

from raft_client import ClientManager
from raft_election import ElectionManager
from raft_events import EventType
from raft_log import RaftLog
from raft_replication import ReplicationManager
from raft_state import (
    LogEntry,
    Message,
    MessageType,
    NodeSnapshot,
    NodeState,
    RaftInvariantError,
    SimulationConfig,
)
from raft_statemachine import KeyValueStore

logger = logging.getLogger(__name__)


class RaftNode:
    """Raft consensus algorithm node.

    ``cluster`` is the engine-side context the node talks through. It must
    provide ``send(sender, target, msg_type, term, payload)``,
    ``emit(event_type, **data)`` and a ``timers`` attribute (TimerManager).
    """

    def __init__(self, node_id: str, peers: List[str], config: SimulationConfig, cluster):
        """Initialize a Raft node."""
        self.node_id = node_id
        self.peers = [p for p in peers if p != node_id]
        self.cluster_size = len(self.peers) + 1  # Total cluster size (including self) for quorum calculation
        self.config = config
        self.cluster = cluster
        self.current_term = 0
        self.voted_for: Optional[str] = None
        self.log = RaftLog()
        self.commit_index = 0
        self.last_applied = 0
        self.state = NodeState.FOLLOWER
        self.alive = True
        self.votes_received: Set[str] = set()
        self.next_index: Dict[str, int] = {}
        self.match_index: Dict[str, int] = {}
        self.election_timer = 0
        self.heartbeat_timer = 0
        self._reset_election_timeout()
        self._init_leader_state()
        self.election_mgr = ElectionManager(self)
        self.replication_mgr = ReplicationManager(self)
        self.client_mgr = ClientManager(self)
        self.state_machine = KeyValueStore(node_id)
        self._handlers = {
            MessageType.REQUEST_VOTE: self.election_mgr.handle_request_vote,
            MessageType.VOTE_GRANTED: self.election_mgr.handle_vote_granted,
            MessageType.VOTE_DENIED: self.election_mgr.handle_vote_denied,
            MessageType.APPEND_ENTRIES: self.replication_mgr.handle_append_entries,
            MessageType.HEARTBEAT: self.replication_mgr.handle_append_entries,
            MessageType.APPEND_ACK: self.replication_mgr.handle_append_ack,
            MessageType.APPEND_NACK: self.replication_mgr.handle_append_nack,
        }

    def __repr__(self) -> str:
        return f"RaftNode({self.node_id}, {self.state.value}, term={self.current_term})"

    @property
    def majority(self) -> int:
        return self.cluster_size // 2 + 1

    def _reset_election_timeout(self):
        """Re-arm the election timer with fresh jitter."""
        self.cluster.timers.arm_election_timer(self)

    def _init_leader_state(self):
        """Initialize leader-specific state."""
        for peer in self.peers:
            self.next_index[peer] = len(self.log) + 1
            self.match_index[peer] = 0

    def send(self, peer: str, msg_type: MessageType, payload: Optional[dict] = None):
        """Send a message stamped with this node's current term."""
        self.cluster.send(self.node_id, peer, msg_type, self.current_term, payload or {})

    def emit(self, event_type: EventType, **data):
        self.cluster.emit(event_type, **data)

    def handle_message(self, message: Message):
        """Process one delivered message."""
        if not self.alive:
            return
        if message.term > self.current_term:
            self.election_mgr.become_follower(message.term)
        self._handlers[message.type](message)

    def start_election(self):
        self.election_mgr.start_election()

    def send_heartbeats(self):
        self.replication_mgr.send_heartbeats()

    def append_command(self, command: str) -> Optional[LogEntry]:
        return self.client_mgr.handle_client_request(command)

    def truncate_log(self, index: int):
        """Drop log entries from ``index`` onward (follower conflict resolution)."""
        if self.state == NodeState.LEADER:
            raise RaftInvariantError(f"leader {self.node_id} attempted to truncate its own log")
        if index <= self.commit_index:
            raise RaftInvariantError(
                f"{self.node_id} attempted to truncate committed entry {index} (commit={self.commit_index})"
            )
        removed = self.log.truncate_from(index)
        if removed:
            logger.debug("%s truncated %d entries from index %d", self.node_id, len(removed), index)

    def advance_commit_index(self, index: int) -> bool:
        """Raise commit_index to ``index`` and apply newly committed entries.

        Lower values are ignored so commit_index never decreases.
        """
        if index > len(self.log):
            raise RaftInvariantError(
                f"{self.node_id} cannot commit index {index} beyond log length {len(self.log)}"
            )
        if index <= self.commit_index:
            return False
        self.commit_index = index
        self._apply_committed_entries()
        return True

    def _apply_committed_entries(self):
        """Apply all committed but not yet applied entries to state machine."""
        while self.last_applied < self.commit_index:
            self.last_applied += 1
            entry = self.log.entry_at(self.last_applied)
            success, result = self.state_machine.apply_command(entry.command)
            if not success:
                logger.debug("%s entry %d not applied: %s", self.node_id, entry.index, result)

    def kill(self):
        """Crash the node: it reverts to follower and stops processing."""
        self.alive = False
        self.state = NodeState.FOLLOWER
        self.votes_received = set()
        # voted_for survives the crash: a revived node must not vote twice in the same term

    def revive(self):
        """Recover the node with a fresh election timeout."""
        self.alive = True
        self.state = NodeState.FOLLOWER
        self.votes_received = set()
        self._reset_election_timeout()

    def snapshot(self) -> NodeSnapshot:
        """Immutable copy of this node's state."""
        return NodeSnapshot(
            node_id=self.node_id,
            state=self.state,
            current_term=self.current_term,
            voted_for=self.voted_for,
            log=self.log.copy_entries(),
            commit_index=self.commit_index,
            last_applied=self.last_applied,
            alive=self.alive,
            election_timer=self.election_timer,
            heartbeat_timer=self.heartbeat_timer,
            votes_received=tuple(p for p in self.peers if p in self.votes_received),
            next_index=tuple((p, self.next_index[p]) for p in self.peers),
            match_index=tuple((p, self.match_index[p]) for p in self.peers),
            data=tuple(sorted(self.state_machine.get_data().items())),
        )
