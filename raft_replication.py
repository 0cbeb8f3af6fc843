"""
Raft Log Replication Module
Handles log replication, consistency checking, and quorum commit logic.
Single Responsibility: Replication logic only.
"""

import logging

from raft_events import EventType
from raft_state import Message, MessageType, NodeState

logger = logging.getLogger(__name__)


class ReplicationManager:
    """Manages log replication and consistency"""

    def __init__(self, node):
        self.node = node

    def send_heartbeats(self):
        """Heartbeat timer fired: send every peer what it is missing, or a heartbeat.

        The commit scan runs first so a leader that is a majority on its own
        (a single-node cluster) commits without waiting for acks.
        """
        if self.node.state == NodeState.LEADER:
            self._update_commit_index()
        for peer in self.node.peers:
            self.send_append_entries(peer)

    def send_append_entries(self, peer_id: str):
        """Send AppendEntries (or an empty Heartbeat) to one peer."""
        node = self.node
        if node.state != NodeState.LEADER:
            return

        # Initialize next_index if peer doesn't have it yet
        if peer_id not in node.next_index:
            node.next_index[peer_id] = len(node.log) + 1
            node.match_index[peer_id] = 0

        next_idx = min(node.next_index[peer_id], len(node.log) + 1)
        node.next_index[peer_id] = next_idx
        prev_log_index = next_idx - 1
        payload = {
            "prev_log_index": prev_log_index,
            "prev_log_term": node.log.term_at(prev_log_index),
            "leader_commit": node.commit_index,
        }

        if next_idx <= len(node.log):
            payload["entries"] = node.log.entries_from(next_idx)
            node.send(peer_id, MessageType.APPEND_ENTRIES, payload)
        else:
            node.send(peer_id, MessageType.HEARTBEAT, payload)

    def handle_append_entries(self, message: Message):
        """Handle AppendEntries / Heartbeat (Raft paper, Figure 2, Receiver)."""
        node = self.node

        if message.term < node.current_term:
            node.send(message.sender, MessageType.APPEND_NACK, {"match_index": 0})
            return

        # A valid leader exists for this term
        if node.state != NodeState.FOLLOWER:
            node.election_mgr.become_follower(message.term)
        node.voted_for = message.sender
        node._reset_election_timeout()

        prev_log_index = message.payload.get("prev_log_index", 0)
        prev_log_term = message.payload.get("prev_log_term", 0)

        if prev_log_index > 0:
            if prev_log_index > len(node.log):
                node.send(message.sender, MessageType.APPEND_NACK, {"match_index": len(node.log)})
                return

            if node.log.term_at(prev_log_index) != prev_log_term:
                node.truncate_log(prev_log_index)
                node.send(message.sender, MessageType.APPEND_NACK, {"match_index": len(node.log)})
                return

        entries = message.payload.get("entries", ())
        written = []
        for entry in entries:
            if entry.index <= len(node.log):
                if node.log.term_at(entry.index) == entry.term:
                    continue
                node.truncate_log(entry.index)
            node.log.append(entry)
            written.append(entry.index)

        if written:
            node.emit(
                EventType.ENTRY_REPLICATED,
                leader=message.sender,
                follower=node.node_id,
                indices=tuple(written),
            )

        # Everything up to here is known to match the leader's log
        verified_index = prev_log_index + len(entries)

        leader_commit = message.payload.get("leader_commit", 0)
        if leader_commit > node.commit_index:
            node.advance_commit_index(min(leader_commit, verified_index))

        node.send(message.sender, MessageType.APPEND_ACK, {"match_index": verified_index})

    def handle_append_ack(self, message: Message):
        node = self.node
        if node.state != NodeState.LEADER or message.term != node.current_term:
            return

        peer_id = message.sender
        reported = message.payload.get("match_index", 0)
        node.match_index[peer_id] = max(node.match_index.get(peer_id, 0), reported)
        node.next_index[peer_id] = reported + 1
        self._update_commit_index()

    def handle_append_nack(self, message: Message):
        node = self.node
        if node.state != NodeState.LEADER or message.term != node.current_term:
            return

        # Retry with an earlier prev_log_index on the next heartbeat
        peer_id = message.sender
        node.next_index[peer_id] = max(1, node.next_index.get(peer_id, 1) - 1)

    def _update_commit_index(self):
        """Update commitIndex if a new entry is replicated to majority.

        Only entries from the current term are committed by counting
        replicas (Raft paper Section 5.4.2); earlier entries commit with them.
        """
        node = self.node
        quorum = node.majority
        old_commit = node.commit_index

        for idx in range(len(node.log), old_commit, -1):
            if node.log.term_at(idx) != node.current_term:
                # Terms never increase going backwards
                break
            count = 1  # Count self
            for peer_id in node.peers:
                if node.match_index.get(peer_id, 0) >= idx:
                    count += 1
            if count >= quorum:
                node.advance_commit_index(idx)
                break

        for idx in range(old_commit + 1, node.commit_index + 1):
            logger.debug("%s committed index %d in term %d", node.node_id, idx, node.current_term)
            node.emit(EventType.ENTRY_COMMITTED, index=idx)
