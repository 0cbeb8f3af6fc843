"""
Raft Consensus Engine
Single-threaded, tick-driven orchestrator for the simulated cluster, and
the control surface external callers drive it through.
"""

import logging
import random
from typing import Dict, Iterable, List, Optional, Tuple

from log_utils import log_event
from raft_bus import MessageBus
from raft_clock import SimulationClock
from raft_events import Event, EventType
from raft_node import RaftNode
from raft_partition import Partition
from raft_state import ClusterSnapshot, MessageType, NodeState, SimulationConfig
from raft_timers import TimerAction, TimerManager

logger = logging.getLogger(__name__)


class ConsensusEngine:
    """Owns the node table, the message bus, the clock and the partition.

    Nothing outside the engine may mutate that state except through the
    control surface methods below. ``step()`` is not reentrant.
    """

    def __init__(self, config: Optional[SimulationConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or SimulationConfig()
        self._injected_rng = rng
        # Starting state of an injected generator, restored on every reset
        self._rng_state = rng.getstate() if rng is not None else None
        self._build()

    def _build(self):
        if self._injected_rng is not None:
            rng = self._injected_rng
            rng.setstate(self._rng_state)
        else:
            rng = random.Random(self.config.seed)
        self.timers = TimerManager(self.config, rng)
        self.clock = SimulationClock()
        self.bus = MessageBus(self.config, self._is_alive)
        self._events: List[Event] = []
        self._client_counter = 0
        self._stepping = False
        self.nodes: Dict[str, RaftNode] = {}
        node_ids = list(self.config.node_ids)
        for node_id in node_ids:
            self.nodes[node_id] = RaftNode(node_id, node_ids, self.config, self)

    # ------------------------------------------------------------------
    # Context used by nodes
    # ------------------------------------------------------------------

    @property
    def tick(self) -> int:
        return self.clock.tick

    @property
    def partition(self) -> Optional[Partition]:
        return self.bus.partition

    def _is_alive(self, node_id: str) -> bool:
        node = self.nodes.get(node_id)
        return node is not None and node.alive

    def send(self, sender: str, target: str, msg_type: MessageType, term: int, payload: dict):
        self.bus.send(sender, target, msg_type, term, payload, tick=self.clock.tick)

    def emit(self, event_type: EventType, **data):
        event = Event(event_type, self.clock.tick, data)
        self._events.append(event)
        log_event(event)

    def _node(self, node_id: str) -> RaftNode:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise ValueError(f"unknown node id: {node_id!r}") from None

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def step(self) -> List[Event]:
        """Advance one tick and return the events generated.

        Events raised by control calls since the previous step come first.
        """
        if self._stepping:
            raise RuntimeError("step() is not reentrant")
        self._stepping = True
        try:
            self.clock.advance()

            # 1. Deliver messages that finished travelling
            for message in self.bus.advance():
                self.nodes[message.target].handle_message(message)

            # 2. Timers, in fixed node order
            for node in self.nodes.values():
                action = self.timers.tick(node)
                if action == TimerAction.START_ELECTION:
                    node.start_election()
                elif action == TimerAction.SEND_HEARTBEAT:
                    node.send_heartbeats()

            # 3. Share commit knowledge
            self._propagate_commit_index()

            events, self._events = self._events, []
            return events
        finally:
            self._stepping = False

    def run(self, ticks: int) -> List[Event]:
        """Step ``ticks`` times and return all events in order."""
        events: List[Event] = []
        for _ in range(ticks):
            events.extend(self.step())
        return events

    def client_request(self, command: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        """Hand a command to the current leader.

        Returns ``(accepted, leader_id)``; without an alive leader the
        request is rejected and not retried.
        """
        leader = self._current_leader()
        if leader is None:
            self.emit(EventType.CLIENT_REQUEST_REJECTED, reason="No leader available - request dropped")
            return False, None

        if command is None:
            self._client_counter += 1
            command = f"SET x={self._client_counter}"

        entry = leader.append_command(command)
        self.emit(
            EventType.CLIENT_REQUEST_ACCEPTED,
            leader=leader.node_id,
            index=entry.index,
            command=entry.command,
        )
        return True, leader.node_id

    def set_node_alive(self, node_id: str, alive: bool) -> bool:
        """Kill or revive a node. Returns False if it already was in that state."""
        node = self._node(node_id)
        if node.alive == alive:
            return False
        if alive:
            node.revive()
            self.emit(EventType.NODE_REVIVED, node=node_id)
        else:
            node.kill()
            self.emit(EventType.NODE_KILLED, node=node_id)
        return True

    def set_partition(self, group_a: Iterable[str]) -> Partition:
        """Split the network; every node not in ``group_a`` forms group B."""
        partition = Partition.split(group_a, self.config.node_ids)
        self.bus.partition = partition
        group_a, group_b = partition.ordered(self.config.node_ids)
        self.emit(EventType.PARTITION_FORMED, group_a=group_a, group_b=group_b)
        return partition

    def heal_partition(self) -> bool:
        if self.bus.partition is None:
            return False
        self.bus.partition = None
        self.emit(EventType.PARTITION_HEALED)
        return True

    def set_election_timer(self, node_id: str, ticks: int):
        """Force a node's election countdown, e.g. to make it time out first."""
        if ticks < 1:
            raise ValueError("election timer must be at least 1 tick")
        self._node(node_id).election_timer = ticks

    def reset(self):
        """Discard all state and recreate the cluster.

        The random generator goes back to its starting state, so the same
        inputs replay the same run.
        """
        self._build()

    def snapshot(self) -> ClusterSnapshot:
        partition = None
        if self.bus.partition is not None:
            partition = self.bus.partition.ordered(self.config.node_ids)
        leader = self._current_leader()
        return ClusterSnapshot(
            tick=self.clock.tick,
            nodes=tuple(node.snapshot() for node in self.nodes.values()),
            messages=tuple(m.to_dict() for m in self.bus.in_flight),
            partition=partition,
            leader_id=leader.node_id if leader else None,
            message_stats=tuple(self.bus.stats.items()),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _leaders(self) -> List[RaftNode]:
        return [n for n in self.nodes.values() if n.alive and n.state == NodeState.LEADER]

    def _current_leader(self) -> Optional[RaftNode]:
        """The alive leader with the highest term (a stale one may linger in a minority)."""
        leaders = self._leaders()
        if not leaders:
            return None
        return max(leaders, key=lambda n: n.current_term)

    def _propagate_commit_index(self):
        """Raise followers' commit index to what their leader has committed.

        Only reachable followers in the leader's term whose log agrees with
        the leader's at the shared index are updated.
        """
        for leader in self._leaders():
            if leader.commit_index == 0:
                continue
            for peer_id in leader.peers:
                follower = self.nodes[peer_id]
                if (
                    not self.bus.can_deliver(leader.node_id, peer_id)
                    or follower.current_term != leader.current_term
                    or follower.state != NodeState.FOLLOWER
                    or follower.commit_index >= leader.commit_index
                ):
                    continue
                shared = min(leader.commit_index, len(follower.log))
                if follower.log.has_entry(shared, leader.log.term_at(shared)):
                    follower.advance_commit_index(shared)
