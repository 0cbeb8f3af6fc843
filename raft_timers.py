"""
Raft Timers Module
Election and heartbeat countdowns. Jitter comes from an injected
``random.Random`` so a seeded run is reproducible.
"""

import random
from enum import Enum
from typing import Optional

from raft_state import NodeState, SimulationConfig


class TimerAction(Enum):
    NONE = "none"
    START_ELECTION = "start-election"
    SEND_HEARTBEAT = "send-heartbeat"


class TimerManager:
    """Arms and ticks per-node timers."""

    def __init__(self, config: SimulationConfig, rng: Optional[random.Random] = None):
        self.config = config
        self.rng = rng or random.Random(config.seed)

    def random_election_timeout(self) -> int:
        """Pick a timeout in [election_timeout_min, election_timeout_max).

        Randomization reduces the chance of split votes.
        """
        low, high = self.config.election_timeout_min, self.config.election_timeout_max
        if high <= low:
            return low
        return self.rng.randrange(low, high)

    def arm_election_timer(self, node):
        node.election_timer = self.random_election_timeout()

    def arm_heartbeat_timer(self, node):
        node.heartbeat_timer = self.config.heartbeat_interval

    def fire_heartbeat_now(self, node):
        """Make the leader's next timer phase send a replication burst."""
        node.heartbeat_timer = 0

    def tick(self, node) -> TimerAction:
        """Count down one tick for an alive node and report what expired."""
        if not node.alive:
            return TimerAction.NONE

        if node.state == NodeState.LEADER:
            node.heartbeat_timer -= 1
            if node.heartbeat_timer <= 0:
                self.arm_heartbeat_timer(node)
                return TimerAction.SEND_HEARTBEAT
            return TimerAction.NONE

        node.election_timer -= 1
        if node.election_timer <= 0:
            return TimerAction.START_ELECTION
        return TimerAction.NONE
