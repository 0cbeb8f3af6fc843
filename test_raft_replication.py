import pytest

from conftest import of_type
from raft_events import EventType
from raft_state import LogEntry, Message, MessageType, NodeState, RaftInvariantError


def deliver(engine, sender, target, msg_type, term, **payload):
    message = Message(f"test-{sender}-{target}", sender, target, msg_type, term, payload)
    engine.nodes[target].handle_message(message)


def replies(engine, sender):
    return [m for m in engine.bus.in_flight if m.sender == sender]


def fill_log(node, *entries):
    for index, (term, command) in enumerate(entries, start=len(node.log) + 1):
        node.log.append(LogEntry(index, term, command))


def make_leader(engine, node_id, term, *entries):
    node = engine.nodes[node_id]
    node.current_term = term
    fill_log(node, *entries)
    node.state = NodeState.LEADER
    node._init_leader_state()
    return node


class TestAppendEntriesReceiver:
    def test_appends_new_entries_and_acks(self, engine):
        entries = (LogEntry(1, 1, "SET a=1"), LogEntry(2, 1, "SET b=2"))
        deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 1,
                prev_log_index=0, prev_log_term=0, entries=entries, leader_commit=0)

        follower = engine.nodes["S2"]
        assert follower.log.copy_entries() == entries
        [ack] = replies(engine, "S2")
        assert ack.type == MessageType.APPEND_ACK
        assert ack.payload["match_index"] == 2

        replicated = of_type(engine.step(), EventType.ENTRY_REPLICATED)
        assert [(e["follower"], e["indices"]) for e in replicated] == [("S2", (1, 2))]

    def test_duplicate_append_entries_is_idempotent(self, engine):
        entries = (LogEntry(1, 1, "SET a=1"), LogEntry(2, 1, "SET b=2"))
        for _ in range(2):
            deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 1,
                    prev_log_index=0, prev_log_term=0, entries=entries, leader_commit=0)

        assert engine.nodes["S2"].log.copy_entries() == entries
        assert [m.payload["match_index"] for m in replies(engine, "S2")] == [2, 2]
        assert len(of_type(engine.step(), EventType.ENTRY_REPLICATED)) == 1

    def test_conflicting_suffix_is_replaced(self, engine):
        follower = engine.nodes["S2"]
        fill_log(follower, (1, "SET a=1"), (1, "SET a=2"), (1, "SET a=3"))

        deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 2,
                prev_log_index=1, prev_log_term=1, entries=(LogEntry(2, 2, "SET b=2"),), leader_commit=0)

        assert [(e.index, e.term) for e in follower.log] == [(1, 1), (2, 2)]
        assert replies(engine, "S2")[0].payload["match_index"] == 2

    def test_matching_prefix_keeps_extra_entries_but_acks_verified_index(self, engine):
        follower = engine.nodes["S2"]
        fill_log(follower, (1, "SET a=1"), (1, "SET a=2"), (1, "SET a=3"))

        deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 1,
                prev_log_index=1, prev_log_term=1, entries=(LogEntry(2, 1, "SET a=2"),), leader_commit=0)

        assert len(follower.log) == 3
        assert replies(engine, "S2")[0].payload["match_index"] == 2

    def test_missing_prev_entry_is_rejected(self, engine):
        fill_log(engine.nodes["S2"], (1, "SET a=1"))

        deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 1,
                prev_log_index=4, prev_log_term=1, entries=(LogEntry(5, 1, "SET e=5"),), leader_commit=0)

        [nack] = replies(engine, "S2")
        assert nack.type == MessageType.APPEND_NACK
        assert nack.payload["match_index"] == 1
        assert len(engine.nodes["S2"].log) == 1

    def test_prev_term_mismatch_truncates_and_rejects(self, engine):
        follower = engine.nodes["S2"]
        fill_log(follower, (1, "SET a=1"), (1, "SET a=2"))

        deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 3,
                prev_log_index=2, prev_log_term=2, entries=(LogEntry(3, 3, "SET c=3"),), leader_commit=0)

        assert len(follower.log) == 1
        [nack] = replies(engine, "S2")
        assert nack.type == MessageType.APPEND_NACK
        assert nack.payload["match_index"] == 1

    def test_stale_leader_is_rejected(self, engine):
        follower = engine.nodes["S2"]
        follower.current_term = 3

        deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 2,
                prev_log_index=0, prev_log_term=0, entries=(LogEntry(1, 2, "SET a=1"),), leader_commit=0)

        assert len(follower.log) == 0
        [nack] = replies(engine, "S2")
        assert nack.type == MessageType.APPEND_NACK
        assert nack.term == 3

    def test_leader_commit_is_applied_to_state_machine(self, engine):
        entries = (LogEntry(1, 1, "SET a=1"), LogEntry(2, 1, "SET b=2"))
        deliver(engine, "S1", "S2", MessageType.APPEND_ENTRIES, 1,
                prev_log_index=0, prev_log_term=0, entries=entries, leader_commit=1)

        follower = engine.nodes["S2"]
        assert follower.commit_index == 1
        assert follower.last_applied == 1
        assert follower.state_machine.get_data() == {"a": "1"}

    def test_heartbeat_commit_is_capped_at_verified_index(self, engine):
        follower = engine.nodes["S2"]
        fill_log(follower, (1, "SET a=1"), (1, "SET b=2"))

        deliver(engine, "S1", "S2", MessageType.HEARTBEAT, 1,
                prev_log_index=1, prev_log_term=1, leader_commit=2)

        assert follower.commit_index == 1
        assert replies(engine, "S2")[0].payload["match_index"] == 1


class TestLeaderBookkeeping:
    def test_ack_advances_match_and_commit(self, engine):
        leader = make_leader(engine, "S1", 1, (1, "SET a=1"), (1, "SET b=2"))
        assert leader.next_index["S2"] == 3

        deliver(engine, "S2", "S1", MessageType.APPEND_ACK, 1, match_index=2)
        assert leader.match_index["S2"] == 2
        assert leader.next_index["S2"] == 3
        assert leader.commit_index == 0

        deliver(engine, "S3", "S1", MessageType.APPEND_ACK, 1, match_index=2)
        assert leader.commit_index == 2
        assert leader.state_machine.get_data() == {"a": "1", "b": "2"}

        committed = of_type(engine.step(), EventType.ENTRY_COMMITTED)
        assert [e["index"] for e in committed] == [1, 2]

    def test_nack_backs_off_next_index_to_one(self, engine):
        leader = make_leader(engine, "S1", 1, (1, "SET a=1"), (1, "SET b=2"))

        expected = [2, 1, 1]
        for value in expected:
            deliver(engine, "S2", "S1", MessageType.APPEND_NACK, 1, match_index=0)
            assert leader.next_index["S2"] == value

    def test_ack_from_previous_term_is_ignored(self, engine):
        leader = make_leader(engine, "S1", 2, (2, "SET a=1"))
        deliver(engine, "S2", "S1", MessageType.APPEND_ACK, 1, match_index=1)
        assert leader.match_index["S2"] == 0

    def test_only_current_term_entries_commit_by_counting(self, engine):
        # Raft paper Figure 8: an older-term entry on a majority is not yet safe
        leader = make_leader(engine, "S1", 3, (2, "SET a=1"))
        leader.match_index.update(S2=1, S3=1)
        leader.replication_mgr._update_commit_index()
        assert leader.commit_index == 0

        fill_log(leader, (3, "SET b=2"))
        leader.match_index.update(S2=2, S3=2)
        leader.replication_mgr._update_commit_index()
        assert leader.commit_index == 2
        assert leader.state_machine.get_data() == {"a": "1", "b": "2"}

    def test_append_entries_sends_missing_suffix(self, engine):
        leader = make_leader(engine, "S1", 1, (1, "SET a=1"), (1, "SET b=2"))
        leader.next_index["S2"] = 2

        leader.replication_mgr.send_append_entries("S2")

        [message] = replies(engine, "S1")
        assert message.type == MessageType.APPEND_ENTRIES
        assert message.payload["prev_log_index"] == 1
        assert message.payload["prev_log_term"] == 1
        assert [e.index for e in message.payload["entries"]] == [2]

    def test_up_to_date_peer_gets_heartbeat(self, engine):
        make_leader(engine, "S1", 1, (1, "SET a=1"))
        engine.nodes["S1"].replication_mgr.send_append_entries("S2")

        [message] = replies(engine, "S1")
        assert message.type == MessageType.HEARTBEAT
        assert "entries" not in message.payload
        assert message.payload["prev_log_index"] == 1


class TestLogGuards:
    def test_leader_never_truncates_its_log(self, engine):
        make_leader(engine, "S1", 1, (1, "SET a=1"))
        with pytest.raises(RaftInvariantError):
            engine.nodes["S1"].truncate_log(1)

    def test_committed_entries_cannot_be_truncated(self, engine):
        follower = engine.nodes["S2"]
        fill_log(follower, (1, "SET a=1"), (1, "SET b=2"))
        follower.advance_commit_index(1)
        with pytest.raises(RaftInvariantError):
            follower.truncate_log(1)
        follower.truncate_log(2)
        assert len(follower.log) == 1

    def test_commit_index_cannot_pass_log_end(self, engine):
        follower = engine.nodes["S2"]
        fill_log(follower, (1, "SET a=1"))
        with pytest.raises(RaftInvariantError):
            follower.advance_commit_index(2)

    def test_commit_index_never_decreases(self, engine):
        follower = engine.nodes["S2"]
        fill_log(follower, (1, "SET a=1"), (1, "SET b=2"))
        assert follower.advance_commit_index(2)
        assert not follower.advance_commit_index(1)
        assert follower.commit_index == 2
