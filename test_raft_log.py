import pytest

from raft_log import RaftLog
from raft_state import LogEntry, RaftInvariantError


def make_log(*terms):
    return RaftLog(LogEntry(i, term, f"cmd{i}") for i, term in enumerate(terms, start=1))


class TestRaftLog:
    def test_empty_log(self):
        log = RaftLog()
        assert len(log) == 0
        assert log.last_index == 0
        assert log.last_term == 0
        assert log.term_at(0) == 0

    def test_last_index_and_term(self):
        log = make_log(1, 1, 2)
        assert log.last_index == 3
        assert log.last_term == 2
        assert log.term_at(2) == 1
        assert log.entry_at(3).command == "cmd3"

    def test_rejects_non_contiguous_append(self):
        log = make_log(1)
        with pytest.raises(RaftInvariantError):
            log.append(LogEntry(3, 1, "gap"))

    def test_rejects_term_regression(self):
        log = make_log(2)
        with pytest.raises(RaftInvariantError):
            log.append(LogEntry(2, 1, "older"))

    def test_entry_out_of_range(self):
        with pytest.raises(RaftInvariantError):
            make_log(1).entry_at(2)

    def test_truncate_from(self):
        log = make_log(1, 1, 2, 2)
        removed = log.truncate_from(3)
        assert [e.index for e in removed] == [3, 4]
        assert log.last_index == 2
        log.append(LogEntry(3, 3, "new"))
        assert log.last_term == 3

    def test_entries_from(self):
        log = make_log(1, 1, 2)
        assert [e.index for e in log.entries_from(2)] == [2, 3]
        assert log.entries_from(4) == ()

    def test_has_entry(self):
        log = make_log(1, 2)
        assert log.has_entry(0, 0)
        assert log.has_entry(2, 2)
        assert not log.has_entry(2, 1)
        assert not log.has_entry(3, 2)


class TestUpToDate:
    """Raft Section 5.4.1 comparison."""

    def test_higher_last_term_wins(self):
        log = make_log(1, 1, 1)
        assert log.is_up_to_date(last_log_term=2, last_log_index=1)

    def test_lower_last_term_loses_even_if_longer(self):
        log = make_log(1, 2)
        assert not log.is_up_to_date(last_log_term=1, last_log_index=10)

    def test_same_term_longer_or_equal_wins(self):
        log = make_log(1, 2)
        assert log.is_up_to_date(last_log_term=2, last_log_index=2)
        assert log.is_up_to_date(last_log_term=2, last_log_index=3)
        assert not log.is_up_to_date(last_log_term=2, last_log_index=1)

    def test_empty_candidate_against_empty_log(self):
        assert RaftLog().is_up_to_date(0, 0)
