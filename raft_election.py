"""
Raft Election Module
Handles leader election, voting, and term management.
Single Responsibility: Election logic only.
"""

import logging

from raft_events import EventType
from raft_state import Message, MessageType, NodeState

logger = logging.getLogger(__name__)


class ElectionManager:
    """Manages leader election logic"""

    def __init__(self, node):
        self.node = node

    def start_election(self):
        """Election timer expired - become candidate and request votes from every peer.

        Nodes in a minority partition keep incrementing their term on each
        timeout but can never gather a quorum.
        """
        self.become_candidate()
        node = self.node
        for peer in node.peers:
            node.send(peer, MessageType.REQUEST_VOTE, {
                "last_log_index": node.log.last_index,
                "last_log_term": node.log.last_term,
            })
        # A single-node cluster wins on its own vote
        if self.check_election_won():
            self.become_leader()

    def become_candidate(self):
        """Transition to CANDIDATE state and start a new term (Raft paper Section 5.2)."""
        node = self.node
        node.state = NodeState.CANDIDATE
        node.current_term += 1
        node.voted_for = node.node_id
        node.votes_received = set()
        node._reset_election_timeout()
        logger.debug("%s became candidate for term %d", node.node_id, node.current_term)
        node.emit(EventType.ELECTION_STARTED, node=node.node_id, term=node.current_term)

    def become_follower(self, term: int):
        """Transition to FOLLOWER state, adopting ``term`` if it is newer."""
        node = self.node
        previous = node.state
        if term > node.current_term:
            node.current_term = term
            node.voted_for = None
        node.state = NodeState.FOLLOWER
        node.votes_received = set()
        node._reset_election_timeout()
        if previous != NodeState.FOLLOWER:
            logger.debug("%s stepped down from %s in term %d", node.node_id, previous.value, node.current_term)
            node.emit(EventType.STEPPED_DOWN, node=node.node_id, new_term=node.current_term)

    def become_leader(self):
        """Transition to LEADER state and initialize leader-specific state."""
        node = self.node
        if node.state == NodeState.LEADER:
            return False
        node.state = NodeState.LEADER
        node.votes_received = set()
        node._init_leader_state()
        # Heartbeat timer at zero: the first burst goes out in this tick's timer phase
        node.cluster.timers.fire_heartbeat_now(node)
        logger.debug("%s became leader for term %d", node.node_id, node.current_term)
        node.emit(EventType.LEADER_ELECTED, node=node.node_id, term=node.current_term)
        return True

    def check_election_won(self) -> bool:
        """Check if candidate has won election (self vote plus granted votes reach quorum)."""
        node = self.node
        if node.state != NodeState.CANDIDATE:
            return False
        return len(node.votes_received) + 1 >= node.majority

    def handle_request_vote(self, message: Message):
        """Handle RequestVote (Raft paper, Figure 2, Receiver).

        A newer term has already been adopted by the node before we get here.
        """
        node = self.node
        if message.term < node.current_term:
            node.send(message.sender, MessageType.VOTE_DENIED)
            return

        # Raft Section 5.4.1: candidate's log must be at least as up-to-date
        candidate_log_ok = node.log.is_up_to_date(
            message.payload.get("last_log_term", 0),
            message.payload.get("last_log_index", 0),
        )

        if candidate_log_ok and node.voted_for in (None, message.sender):
            node.voted_for = message.sender
            node._reset_election_timeout()
            node.send(message.sender, MessageType.VOTE_GRANTED)
            node.emit(EventType.VOTE_GRANTED, **{
                "from": node.node_id, "to": message.sender, "term": node.current_term,
            })
        else:
            node.send(message.sender, MessageType.VOTE_DENIED)

    def handle_vote_granted(self, message: Message):
        node = self.node
        if node.state != NodeState.CANDIDATE or message.term != node.current_term:
            return
        node.votes_received.add(message.sender)
        if self.check_election_won():
            self.become_leader()

    def handle_vote_denied(self, message: Message):
        # Only a newer term matters, and handle_message has already stepped down for it
        pass
