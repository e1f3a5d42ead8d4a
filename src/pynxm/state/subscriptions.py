"""Subsystem -> observer subscriptions."""

from __future__ import annotations

from collections.abc import Iterable


class SubscriptionRegistry:
    """Tracks which external observers depend on which subsystems."""

    def __init__(self) -> None:
        self._observers: dict[str, set[str]] = {}

    def subscribe(self, subsystem: str, observer_id: str) -> None:
        self._observers.setdefault(subsystem, set()).add(observer_id)

    def unsubscribe(self, subsystem: str, observer_id: str) -> None:
        observers = self._observers.get(subsystem)
        if observers is None:
            return
        observers.discard(observer_id)
        if not observers:
            del self._observers[subsystem]

    def unsubscribe_all(self, observer_id: str) -> None:
        """Drop *observer_id* from every subsystem."""
        for subsystem in list(self._observers):
            self.unsubscribe(subsystem, observer_id)

    def observers(self, subsystem: str) -> frozenset[str]:
        return frozenset(self._observers.get(subsystem, ()))

    def resolve(self, subsystems: Iterable[str]) -> set[str]:
        """Union of observers subscribed to any of *subsystems*."""
        affected: set[str] = set()
        for subsystem in subsystems:
            affected |= self._observers.get(subsystem, set())
        return affected

    def clear(self) -> None:
        self._observers.clear()
