"""
Raft Simulation Client
Drives a remote simulation through the gRPC control service.
"""

import sys
from typing import Dict, Iterable, List, Optional, Tuple

import grpc
from google.protobuf.struct_pb2 import Struct

from raft_service import METHODS, SERVICE_NAME, from_struct, to_struct


class ControlClient:
    """Client for the simulation control service"""

    def __init__(self, address: str = "localhost:6000", timeout: float = 2.0):
        self.address = address
        self.timeout = timeout  # seconds
        self.channel = grpc.insecure_channel(address)
        self._calls = {
            name: self.channel.unary_unary(
                f"/{SERVICE_NAME}/{name}",
                request_serializer=Struct.SerializeToString,
                response_deserializer=Struct.FromString,
            )
            for name in METHODS
        }

    def _call(self, method: str, request: Optional[Dict] = None) -> Dict:
        response = self._calls[method](to_struct(request or {}), timeout=self.timeout)
        return from_struct(response)

    def step(self, ticks: int = 1) -> List[Dict]:
        """Advance the simulation and return the events as dicts."""
        return self._call("Step", {"ticks": ticks})["events"]

    def client_request(self, command: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        response = self._call("ClientRequest", {"command": command})
        return response["accepted"], response["leader_id"]

    def set_node_alive(self, node_id: str, alive: bool) -> bool:
        return self._call("SetNodeAlive", {"node_id": node_id, "alive": alive})["changed"]

    def set_partition(self, group_a: Iterable[str]) -> Dict:
        return self._call("SetPartition", {"group_a": list(group_a)})

    def heal_partition(self) -> bool:
        return self._call("HealPartition")["healed"]

    def reset(self):
        self._call("Reset")

    def snapshot(self) -> Dict:
        return self._call("Snapshot")

    def print_cluster_status(self):
        """Print a short status table of the remote cluster"""
        snapshot = self.snapshot()
        print("\n" + "=" * 60)
        print(f"CLUSTER STATUS (tick {snapshot['tick']})")
        print("=" * 60)
        for node in snapshot["nodes"]:
            if not node["alive"]:
                status = "DEAD ✗"
            elif node["state"] == "leader":
                status = "LEADER ★"
            else:
                status = node["state"].upper()
            print(f"  {node['node_id']}: {status:<10} term={node['term']} "
                  f"log={len(node['log'])} commit={node['commit_index']}")
        if snapshot["partition"]:
            print(f"  Partition: {snapshot['partition']['group_a']} | {snapshot['partition']['group_b']}")
        print("=" * 60)

    def close(self):
        self.channel.close()


def print_help():
    """Print help message"""
    print("""
Commands:
  step [n]              - Advance n ticks (default 1)
  request [command]     - Send a client command (default: SET x=<n>)
  kill <id>             - Kill a node
  revive <id>           - Revive a node
  partition <id> [...]  - Split the network; listed nodes form group A
  heal                  - Heal the partition
  status                - Show cluster status
  reset                 - Reset the simulation
  exit/quit             - Exit the client
""")


def interactive_mode(client: ControlClient):
    """Run the client in interactive mode"""
    print_help()
    while True:
        try:
            user_input = input("\nraft> ").strip()
            if not user_input:
                continue

            parts = user_input.split()
            cmd = parts[0].lower()

            if cmd in ["exit", "quit", "q"]:
                print("Goodbye!")
                break
            elif cmd == "help":
                print_help()
            elif cmd == "status":
                client.print_cluster_status()
            elif cmd == "step":
                ticks = int(parts[1]) if len(parts) > 1 else 1
                for event in client.step(ticks):
                    print(f"  [tick {event['tick']:4d}] {event['type']} {event['data']}")
            elif cmd == "request":
                command = user_input.split(None, 1)[1] if len(parts) > 1 else None
                accepted, leader = client.client_request(command)
                print(f"[✓] Accepted by {leader}" if accepted else "[✗] Rejected: no leader")
            elif cmd in ("kill", "revive") and len(parts) == 2:
                client.set_node_alive(parts[1], cmd == "revive")
            elif cmd == "partition" and len(parts) > 1:
                groups = client.set_partition(parts[1:])
                print(f"Partition: {groups['group_a']} | {groups['group_b']}")
            elif cmd == "heal":
                client.heal_partition()
            elif cmd == "reset":
                client.reset()
            else:
                print(f"[ERROR] Unknown command: '{cmd}'. Type 'help' for available commands.")

        except grpc.RpcError as e:
            print(f"[ERROR] RPC failed: {e.code().name} - {e.details()}")
        except ValueError as e:
            print(f"[ERROR] {e}")
        except KeyboardInterrupt:
            print("\n\nInterrupted. Type 'exit' to quit.")
        except EOFError:
            print("\nGoodbye!")
            break


def main():
    """Main entry point"""
    address = "localhost:6000"
    args = sys.argv[1:]

    if "--help" in args or "-h" in args:
        print("Usage: python client.py [--address host:port]")
        return

    if "--address" in args:
        idx = args.index("--address")
        if idx + 1 < len(args):
            address = args[idx + 1]

    client = ControlClient(address)
    try:
        interactive_mode(client)
    finally:
        client.close()


if __name__ == "__main__":
    main()
