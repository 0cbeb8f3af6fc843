"""
Raft State Machine Module
In-memory key-value store each node applies committed entries to.
Single Responsibility: State machine operations only.
"""

from typing import Dict, Tuple


class KeyValueStore:
    """Simple in-memory key-value store"""

    def __init__(self, node_id: str):
        """Initialize key-value store."""
        self.node_id = node_id
        self.data: Dict[str, str] = {}

    @staticmethod
    def _split_assignment(parts) -> Tuple[str, str]:
        # Accepts both "SET key value" and "SET key=value"
        if len(parts) >= 3:
            return parts[1], parts[2]
        key, sep, value = parts[1].partition("=")
        if not sep or not key:
            raise ValueError("SET requires: SET <key> <value> or SET <key>=<value>")
        return key, value

    def apply_command(self, command: str) -> Tuple[bool, str]:
        """Apply a command to the state machine (SET/GET/DELETE operations)."""
        if command.strip().upper() == "NO-OP":
            return True, "NO-OP"

        parts = command.strip().split(None, 2)

        if not parts:
            return False, "Empty command"

        operation = parts[0].upper()

        if operation == "SET":
            if len(parts) < 2:
                return False, "SET requires: SET <key> <value>"
            try:
                key, value = self._split_assignment(parts)
            except ValueError as e:
                return False, str(e)
            self.data[key] = value
            return True, f"SET {key}={value}"

        elif operation == "GET":
            if len(parts) < 2:
                return False, "GET requires: GET <key>"
            key = parts[1]
            value = self.data.get(key, "NOT_FOUND")
            return True, f"GET {key}={value}"

        elif operation == "DELETE":
            if len(parts) < 2:
                return False, "DELETE requires: DELETE <key>"
            key = parts[1]
            if self.data.pop(key, None) is None:
                return False, f"DELETE {key}: NOT_FOUND"
            return True, f"DELETE {key}"

        else:
            return False, f"Unknown command: {operation}"

    def get_data(self) -> Dict[str, str]:
        """Get current state machine data."""
        return self.data.copy()

    def get_size(self) -> int:
        """Get number of key-value pairs."""
        return len(self.data)

    def display(self) -> str:
        """Format current state for display."""
        if not self.data:
            return "  (empty)"

        lines = []
        for key, value in sorted(self.data.items()):
            lines.append(f"    {key}: {value}")
        return "\n".join(lines)
