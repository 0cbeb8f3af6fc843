"""
Cluster Manager - Console-facing wrapper around the consensus engine
Single Responsibility: Cluster management only.
"""

from typing import List, Optional

from log_utils import Colors, print_colored, print_events, print_snapshot
from raft_engine import ConsensusEngine
from raft_state import DEFAULT_NODE_IDS, NodeState, SimulationConfig
import raft_service


class Config:
    """Global configuration (all times in ticks)"""
    ELECTION_TIMEOUT_MIN = 8
    ELECTION_TIMEOUT_MAX = 16
    HEARTBEAT_INTERVAL = 3
    MESSAGE_TRAVEL_TICKS = 2
    SEED = None
    SERVICE_PORT = 6000


def wait_for_leader(engine: ConsensusEngine, max_ticks: int = 100, exclude_id: Optional[str] = None):
    """Step until a leader (other than ``exclude_id``) exists; return the events seen."""
    events = []
    for _ in range(max_ticks):
        leader = engine.snapshot().leader_id
        if leader is not None and leader != exclude_id:
            break
        events.extend(engine.step())
    return events


def create_simulation_config(node_ids=DEFAULT_NODE_IDS, seed: Optional[int] = None) -> SimulationConfig:
    """Create SimulationConfig from Config."""
    return SimulationConfig(
        node_ids=tuple(node_ids),
        election_timeout_min=Config.ELECTION_TIMEOUT_MIN,
        election_timeout_max=Config.ELECTION_TIMEOUT_MAX,
        heartbeat_interval=Config.HEARTBEAT_INTERVAL,
        message_travel_ticks=Config.MESSAGE_TRAVEL_TICKS,
        seed=Config.SEED if seed is None else seed,
    )


class ClusterManager:
    """Manages the simulated cluster for the interactive console"""

    def __init__(self, node_ids=DEFAULT_NODE_IDS, seed: Optional[int] = None):
        self.engine = ConsensusEngine(create_simulation_config(node_ids, seed))

    @property
    def node_ids(self) -> List[str]:
        return list(self.engine.config.node_ids)

    def step(self, ticks: int = 1) -> int:
        """Advance the simulation, printing the events; returns the number of events."""
        events = self.engine.run(ticks)
        print_events(events)
        return len(events)

    def wait_for_leader(self, max_ticks: int = 100) -> bool:
        events = wait_for_leader(self.engine, max_ticks)
        print_events(events)
        leader = self.engine.snapshot().leader_id
        if leader is None:
            print_colored(f"No leader after {max_ticks} ticks", Colors.WARNING)
            return False
        print_colored(f"Leader: {leader}", Colors.OKGREEN)
        return True

    def send_command(self, command: Optional[str] = None) -> bool:
        accepted, leader_id = self.engine.client_request(command)
        if accepted:
            print(f"Command accepted by {leader_id}")
        else:
            print_colored("Rejected: no leader available", Colors.FAIL)
        return accepted

    def kill_node(self, node_id: str) -> bool:
        """Stop a node (simulate failure)."""
        if not self._validate_node_id(node_id):
            return False
        if not self.engine.set_node_alive(node_id, False):
            print(f"Node {node_id} is already dead")
            return False
        print(f"Node {node_id} killed")
        return True

    def revive_node(self, node_id: str) -> bool:
        """Revive a stopped node."""
        if not self._validate_node_id(node_id):
            return False
        if not self.engine.set_node_alive(node_id, True):
            print(f"Node {node_id} is not dead")
            return False
        print(f"Node {node_id} revived")
        return True

    def create_partition(self, group_a: List[str]) -> bool:
        """
        Create a network partition between two groups of nodes.
        Nodes in group_a cannot communicate with the rest and vice versa.
        """
        try:
            partition = self.engine.set_partition(group_a)
        except ValueError as e:
            print_colored(f"Cannot partition: {e}", Colors.FAIL)
            return False

        quorum = self.engine.config.majority
        group_a, group_b = partition.ordered(self.engine.config.node_ids)
        print(f"\n{'='*60}")
        print("NETWORK PARTITION CREATED")
        print(f"{'='*60}")
        for name, group in (("Group A", group_a), ("Group B", group_b)):
            verdict = "-> CAN elect leader" if len(group) >= quorum else "-> NO quorum"
            print(f"{name}: {list(group)} ({len(group)} nodes) {verdict}")
        print(f"{'='*60}\n")
        return True

    def heal_partition(self) -> bool:
        if not self.engine.heal_partition():
            print("No partition to heal")
            return False
        print("Network partition healed")
        return True

    def reset(self):
        self.engine.reset()
        print("Simulation reset")

    def print_snapshot(self, reason: str = ""):
        print_snapshot(self.engine.snapshot(), "CLUSTER SNAPSHOT", reason)

    def query_node_database(self, node_id: str) -> bool:
        """Print the applied state machine of a specific node."""
        if not self._validate_node_id(node_id):
            return False
        node = self.engine.nodes[node_id]
        print("\n" + "="*60)
        print(f"NODE {node_id} DATABASE STATE")
        print("="*60)
        print(f"State: {node.state.value.upper()}{'' if node.alive else ' (DEAD)'}")
        print(f"Term: {node.current_term}")
        print(f"Commit Index: {node.commit_index}  Last Applied: {node.last_applied}")
        print("\nStored Data:")
        print(node.state_machine.display())
        print("="*60 + "\n")
        return True

    def get_cluster_summary(self) -> dict:
        """Get summary info about cluster."""
        snapshot = self.engine.snapshot()
        leaders = sum(1 for n in snapshot.nodes if n.alive and n.state == NodeState.LEADER)
        stopped = sum(1 for n in snapshot.nodes if not n.alive)
        return {
            "tick": snapshot.tick,
            "total_nodes": len(snapshot.nodes),
            "leaders": leaders,
            "followers": len(snapshot.nodes) - leaders - stopped,
            "stopped": stopped,
            "leader_id": snapshot.leader_id,
            "partitioned": snapshot.partition is not None,
        }

    def serve(self, port: int = Config.SERVICE_PORT):
        """Hand the engine to the gRPC control service until Ctrl+C."""
        print(f"Control service listening on port {port} (Ctrl+C to return)")
        raft_service.run_forever(self.engine, port)

    def _validate_node_id(self, node_id: str) -> bool:
        """Validate node ID exists."""
        if node_id not in self.engine.nodes:
            print(f"Invalid node ID: {node_id}")
            return False
        return True
