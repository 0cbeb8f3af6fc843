"""
Raft Client Interaction Module
Handles client commands arriving at a node.
Single Responsibility: Client request handling only.
"""

from typing import Optional

from raft_state import LogEntry, NodeState


class ClientManager:
    """Handles client interactions on one node"""

    def __init__(self, node):
        self.node = node

    def handle_client_request(self, command: str) -> Optional[LogEntry]:
        """Append a client command to the leader's log.

        Returns the new entry, or None when this node is not an alive leader.
        """
        node = self.node
        if not node.alive or node.state != NodeState.LEADER:
            return None

        new_entry = LogEntry(index=len(node.log) + 1, term=node.current_term, command=command)
        node.log.append(new_entry)
        self._trigger_replication()
        return new_entry

    def _trigger_replication(self):
        """Let the next timer phase replicate instead of waiting a full heartbeat interval."""
        self.node.cluster.timers.fire_heartbeat_now(self.node)
