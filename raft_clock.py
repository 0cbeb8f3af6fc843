"""Discrete simulation clock."""


class SimulationClock:
    """Owns the tick counter; advanced exactly once per engine step."""

    def __init__(self, start: int = 0):
        self.tick = start

    def advance(self) -> int:
        self.tick += 1
        return self.tick
