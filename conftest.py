import itertools
from typing import Dict, List, Optional

import pytest

from raft_engine import ConsensusEngine
from raft_events import Event, EventType
from raft_state import NodeState, SimulationConfig


@pytest.fixture
def config() -> SimulationConfig:
    return SimulationConfig(seed=42)


@pytest.fixture
def engine(config) -> ConsensusEngine:
    return ConsensusEngine(config)


def of_type(events: List[Event], event_type: EventType) -> List[Event]:
    return [e for e in events if e.type == event_type]


def elect(engine: ConsensusEngine, node_id: str = "S1", max_ticks: int = 50) -> List[Event]:
    """Force ``node_id`` to time out first and step until it leads."""
    engine.set_election_timer(node_id, 1)
    events = []
    for _ in range(max_ticks):
        events.extend(engine.step())
        if engine.nodes[node_id].state == NodeState.LEADER:
            return events
    raise AssertionError(f"{node_id} did not become leader within {max_ticks} ticks")


def step_until(engine: ConsensusEngine, predicate, max_ticks: int = 200) -> List[Event]:
    """Step until ``predicate(events_so_far)`` holds."""
    events = []
    for _ in range(max_ticks):
        events.extend(engine.step())
        if predicate(events):
            return events
    raise AssertionError(f"condition not reached within {max_ticks} ticks")


class InvariantChecker:
    """Checks the Raft safety properties after every tick."""

    def __init__(self, engine: ConsensusEngine):
        self.engine = engine
        self.leaders_by_term: Dict[int, str] = {}
        self.commit_seen: Dict[str, int] = {}
        self.committed: Dict[int, tuple] = {}
        self.leader_logs: Dict[str, tuple] = {}

    def check(self):
        nodes = list(self.engine.nodes.values())

        # Election safety: at most one leader per term, ever
        for node in nodes:
            if node.state == NodeState.LEADER:
                owner = self.leaders_by_term.setdefault(node.current_term, node.node_id)
                assert owner == node.node_id, f"two leaders in term {node.current_term}"

        # Leader append-only: a leader's log only grows while it stays leader
        for node in nodes:
            key = f"{node.node_id}@{node.current_term}"
            entries = node.log.copy_entries()
            if node.state == NodeState.LEADER:
                previous = self.leader_logs.get(key, ())
                assert entries[:len(previous)] == previous, f"{key} rewrote its log"
                self.leader_logs[key] = entries

        # Log matching
        for a, b in itertools.combinations(nodes, 2):
            shared = min(len(a.log), len(b.log))
            for index in range(shared, 0, -1):
                if a.log.term_at(index) == b.log.term_at(index):
                    assert a.log.copy_entries()[:index] == b.log.copy_entries()[:index]
                    break

        for node in nodes:
            # Monotonic commit index and commit bounded by log length
            assert node.commit_index <= len(node.log)
            assert node.commit_index >= self.commit_seen.get(node.node_id, 0)
            self.commit_seen[node.node_id] = node.commit_index

            # Committed entries never change
            for index in range(1, node.commit_index + 1):
                entry = node.log.entry_at(index)
                known = self.committed.setdefault(index, (entry.term, entry.command))
                assert known == (entry.term, entry.command), f"committed entry {index} changed"


@pytest.fixture
def checker(engine) -> InvariantChecker:
    return InvariantChecker(engine)


def current_leader(engine: ConsensusEngine) -> Optional[str]:
    return engine.snapshot().leader_id
