"""Utilities for Raft logging and monitoring."""

import logging
from typing import Iterable

from raft_events import FAILURE_EVENTS, EventType

logging.basicConfig(
    level=logging.WARNING,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)


class Colors:
    """ANSI color codes for terminal output."""
    HEADER = "\033[95m"
    OKBLUE = "\033[94m"
    OKCYAN = "\033[96m"
    OKGREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    ENDC = "\033[0m"
    BOLD = "\033[1m"
    UNDERLINE = "\033[4m"


def print_colored(text: str, color: str) -> None:
    """Print colored text to terminal"""
    print(f"{color}{text}{Colors.ENDC}")


def log_event(event) -> None:
    """Log a domain event with its tick"""
    message = f"tick {event.tick}: {event.describe()}"
    if event.type in FAILURE_EVENTS:
        logger.warning(message)
    else:
        logger.info(message)


def format_node_state(node) -> str:
    """Format a node snapshot for display"""
    state = node.state.value.upper()

    if not node.alive:
        color = Colors.FAIL
        symbol = "💀"
        state = "DEAD"
    elif state == "LEADER":
        color = Colors.OKGREEN
        symbol = "👑"
    elif state == "CANDIDATE":
        color = Colors.WARNING
        symbol = "🔔"
    else:
        color = Colors.OKCYAN
        symbol = "👤"

    state_str = f"{color}{symbol} {state:<9}{Colors.ENDC}"
    voted_str = f"voted_for={node.voted_for}" if node.voted_for is not None else "voted_for=None"

    if not node.alive:
        timer_str = "DEAD"
    elif node.state.value == "leader":
        timer_str = f"heartbeat in {node.heartbeat_timer}"
    else:
        timer_str = f"election in {node.election_timer}"

    return (
        f"{node.node_id}: {state_str} | Term={node.current_term:<3} | {voted_str:<15} | "
        f"Log={len(node.log):2d} Commit={node.commit_index:2d} Data={len(node.data):2d} | {timer_str}"
    )


def format_log(node) -> str:
    """Compact one-line rendering of a node's log, committed entries marked with '*'"""
    if not node.log:
        return "(empty)"
    cells = []
    for entry in node.log:
        mark = "*" if entry.index <= node.commit_index else ""
        cells.append(f"{entry.index}:t{entry.term}{mark}")
    return " ".join(cells)


def print_snapshot(snapshot, title: str = "CLUSTER STATE", reason: str = "") -> None:
    """Print current state of all nodes"""
    print("\n" + "="*120)
    print(f"{title} (tick {snapshot.tick})")
    if reason:
        print(f"→ {reason}")
    if snapshot.partition is not None:
        group_a, group_b = snapshot.partition
        print(f"Partition: [{','.join(group_a)}] | [{','.join(group_b)}]")
    print("="*120)

    for node in snapshot.nodes:
        print(f"  {format_node_state(node)}")
        print(f"      log: {format_log(node)}")

    stats = dict(snapshot.message_stats)
    print(f"\n  In flight: {len(snapshot.messages)} message(s) | "
          f"sent={stats.get('sent', 0)} delivered={stats.get('delivered', 0)} dropped={stats.get('dropped', 0)}")
    print("="*120 + "\n")


def print_events(events: Iterable) -> None:
    """Print events, colored by kind"""
    for event in events:
        if event.type in FAILURE_EVENTS:
            color = Colors.FAIL
        elif event.type in (EventType.LEADER_ELECTED, EventType.ENTRY_COMMITTED):
            color = Colors.OKGREEN
        elif event.type in (EventType.ELECTION_STARTED, EventType.STEPPED_DOWN):
            color = Colors.WARNING
        else:
            color = Colors.OKCYAN
        print_colored(f"  [tick {event.tick:4d}] {event.describe()}", color)
