"""Thread-safe counters shared by pipeline stages."""

import threading


class Counter:
    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._lock = threading.Lock()
        self._value = 0

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class Registry:
    """Named counters. Registering an existing name returns the same counter."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}

    def counter(self, name: str, description: str = "") -> Counter:
        with self._lock:
            existing = self._counters.get(name)
            if existing is None:
                existing = Counter(name, description)
                self._counters[name] = existing
            return existing

    def snapshot(self) -> dict[str, int]:
        """Return a point-in-time copy of every counter value."""
        with self._lock:
            counters = list(self._counters.values())
        return {c.name: c.value for c in counters}
