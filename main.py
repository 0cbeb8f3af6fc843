"""
Raft Consensus Simulator - Interactive Control Menu
Step the simulated cluster, inject client commands, kill nodes and split
the network while watching the events each tick produces.
"""

import os
import sys
from typing import List, Optional

from cluster_manager import ClusterManager, Config


def clear_screen():
    """Clear the terminal screen"""
    os.system('cls' if os.name == 'nt' else 'clear')


def get_node_ids_input(prompt: str, valid_ids: List[str]) -> list:
    """Get validated node IDs input from user (supports multiple IDs separated by space/comma)"""
    try:
        raw_input = input(prompt).strip()
        if not raw_input:
            return []

        # Split by space or comma
        parts = raw_input.replace(',', ' ').split()
        node_ids = []

        for part in parts:
            value = part.strip().upper()
            if value in valid_ids:
                if value not in node_ids:  # Avoid duplicates
                    node_ids.append(value)
            else:
                print(f"Skipping {part}: must be one of {', '.join(valid_ids)}")

        return node_ids
    except KeyboardInterrupt:
        print("\nCancelled.\n")
        return []


def get_int_input(prompt: str, default: int) -> int:
    raw_input = input(prompt).strip()
    if not raw_input:
        return default
    try:
        return max(1, int(raw_input))
    except ValueError:
        print(f"Not a number, using {default}")
        return default

# ============================================================================
# INTERACTIVE MENU
# ============================================================================

class Menu:
    """Interactive menu system"""

    def __init__(self, node_ids, seed: Optional[int], port: int):
        self.manager = ClusterManager(node_ids, seed)
        self.port = port
        self.running = True

    def run(self):
        """Main menu loop"""
        print("\n" + "="*80)
        print("RAFT CONSENSUS SIMULATOR - INTERACTIVE CONTROL MENU")
        print("="*80)
        print(f"Simulating a {len(self.manager.node_ids)}-node cluster: {', '.join(self.manager.node_ids)}\n")

        while self.running:
            self._print_menu_header()
            self._handle_menu_choice(input("Enter choice (0-13): ").strip())

    def _print_menu_header(self):
        """Print menu header with cluster status"""
        summary = self.manager.get_cluster_summary()
        print()
        print(f"[Tick {summary['tick']}] Nodes={summary['total_nodes']} Leaders={summary['leaders']} "
              f"Followers={summary['followers']} Stopped={summary['stopped']}"
              f"{' PARTITIONED' if summary['partitioned'] else ''}")
        if summary['leader_id'] is not None:
            print(f"[Current Leader] {summary['leader_id']}")
        print()

        print("Main Menu:")
        print("  0. Clear screen")
        print("  1. Step one tick")
        print("  2. Run N ticks")
        print("  3. Run until a leader is elected")
        print("  4. Send client command")
        print("  5. Kill node(s)")
        print("  6. Revive node(s)")
        print("  7. Create network partition")
        print("  8. Heal network partition")
        print("  9. Print cluster snapshot")
        print(" 10. Query node database")
        print(" 11. Reset simulation")
        print(" 12. Serve control surface over gRPC")
        print(" 13. Exit")
        print()

    def _handle_menu_choice(self, choice: str):
        """Handle menu choice"""
        try:
            if choice == "0":
                clear_screen()
            elif choice == "1":
                self.manager.step()
            elif choice == "2":
                self.manager.step(get_int_input("Ticks [10]: ", 10))
            elif choice == "3":
                self.manager.wait_for_leader()
            elif choice == "4":
                command = input("Command [default SET x=<n>]: ").strip()
                self.manager.send_command(command or None)
            elif choice == "5":
                self._get_node_ids_and_execute("Kill nodes", self.manager.kill_node)
            elif choice == "6":
                self._get_node_ids_and_execute("Revive nodes", self.manager.revive_node)
            elif choice == "7":
                self._create_partition()
            elif choice == "8":
                self.manager.heal_partition()
            elif choice == "9":
                self.manager.print_snapshot("User requested cluster state")
            elif choice == "10":
                node_ids = get_node_ids_input("Enter node ID: ", self.manager.node_ids)
                if node_ids:
                    self.manager.query_node_database(node_ids[0])
            elif choice == "11":
                self.manager.reset()
            elif choice == "12":
                self.manager.serve(self.port)
            elif choice == "13":
                print("\nExiting...\n")
                self.running = False
            else:
                print("Invalid choice. Please enter 0-13.")
        except KeyboardInterrupt:
            print("\n\nInterrupted. Exiting...\n")
            self.running = False
        except Exception as e:
            print(f"Error: {str(e)}")

    def _get_node_ids_and_execute(self, action: str, callback):
        """Get multiple node IDs input and execute callback for each"""
        print(f"Cluster nodes: {', '.join(self.manager.node_ids)}")
        print("Enter node ID(s) separated by space or comma (e.g., 'S1' or 'S1 S2'):")
        node_ids = get_node_ids_input("Node ID(s): ", self.manager.node_ids)

        if node_ids:
            for node_id in node_ids:
                callback(node_id)
            print(f"{action}: {node_ids}")

    def _create_partition(self):
        """Create a network partition between two groups"""
        print("\nEnter Group A - remaining nodes will be Group B")
        print("Example: 'S1,S2' creates Group A={S1,S2}, Group B={S3,S4,S5}")
        group_a = get_node_ids_input("Group A node IDs: ", self.manager.node_ids)
        if not group_a:
            print("Cancelled.")
            return
        self.manager.create_partition(group_a)

# ============================================================================
# MAIN
# ============================================================================

def parse_args(args: List[str]):
    """Parse --seed, --port and --nodes"""
    seed = Config.SEED
    port = Config.SERVICE_PORT
    nodes = 5

    if "--seed" in args:
        idx = args.index("--seed")
        if idx + 1 < len(args):
            seed = int(args[idx + 1])

    if "--port" in args:
        idx = args.index("--port")
        if idx + 1 < len(args):
            port = int(args[idx + 1])

    if "--nodes" in args:
        idx = args.index("--nodes")
        if idx + 1 < len(args):
            nodes = int(args[idx + 1])

    node_ids = [f"S{i}" for i in range(1, nodes + 1)]
    return node_ids, seed, port


def main():
    """Main entry point"""
    args = sys.argv[1:]
    if "--help" in args or "-h" in args:
        print("Usage: python main.py [options]")
        print("Options:")
        print("  --seed <n>       Seed for election timeout jitter (default: random)")
        print("  --port <port>    Port for the gRPC control service (default: 6000)")
        print("  --nodes <n>      Number of nodes in cluster (default: 5)")
        print("  --help, -h       Show this help message")
        return

    node_ids, seed, port = parse_args(args)
    try:
        menu = Menu(node_ids, seed, port)
        menu.run()
    finally:
        print("\nCleaning up...")


if __name__ == "__main__":
    main()
