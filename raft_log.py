"""
Raft Log Module
Ordered, 1-based log of entries with the comparison helpers used by
elections and replication.
"""

from typing import Iterable, Iterator, List, Tuple

from raft_state import LogEntry, RaftInvariantError


class RaftLog:
    """A node's log. Indices start at 1 and are contiguous."""

    def __init__(self, entries: Iterable[LogEntry] = ()):
        self._entries: List[LogEntry] = []
        for entry in entries:
            self.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"RaftLog({[(e.index, e.term) for e in self._entries]})"

    @property
    def last_index(self) -> int:
        return len(self._entries)

    @property
    def last_term(self) -> int:
        return self._entries[-1].term if self._entries else 0

    def entry_at(self, index: int) -> LogEntry:
        """Return the entry at a 1-based index."""
        if not 1 <= index <= len(self._entries):
            raise RaftInvariantError(f"log index {index} out of range 1..{len(self._entries)}")
        return self._entries[index - 1]

    def term_at(self, index: int) -> int:
        """Term of the entry at ``index``; index 0 is the empty prefix with term 0."""
        if index == 0:
            return 0
        return self.entry_at(index).term

    def has_entry(self, index: int, term: int) -> bool:
        """True if the log holds an entry with this (index, term) pair."""
        if index == 0:
            return term == 0
        return index <= len(self._entries) and self._entries[index - 1].term == term

    def is_up_to_date(self, last_log_term: int, last_log_index: int) -> bool:
        """Whether a log ending at (term, index) is at least as up to date as this one."""
        if last_log_term != self.last_term:
            return last_log_term > self.last_term
        return last_log_index >= self.last_index

    def entries_from(self, index: int) -> Tuple[LogEntry, ...]:
        """All entries from ``index`` to the end."""
        return tuple(self._entries[max(index, 1) - 1:])

    def append(self, entry: LogEntry) -> None:
        if entry.index != len(self._entries) + 1:
            raise RaftInvariantError(
                f"non-contiguous append: got index {entry.index}, expected {len(self._entries) + 1}"
            )
        if entry.term < self.last_term:
            raise RaftInvariantError(
                f"term regression at index {entry.index}: {entry.term} < {self.last_term}"
            )
        self._entries.append(entry)

    def truncate_from(self, index: int) -> List[LogEntry]:
        """Drop the entry at ``index`` and everything after it; return what was removed."""
        if index < 1:
            raise RaftInvariantError(f"cannot truncate from index {index}")
        removed = self._entries[index - 1:]
        del self._entries[index - 1:]
        return removed

    def copy_entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)
