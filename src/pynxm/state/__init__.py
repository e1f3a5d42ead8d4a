"""State/store layer.

This package is the single source of truth for the mirrored device
state: the store merges partial updates from the realtime channel into
the canonical snapshot, and the registry maps the changed subsystems to
the observers that must be notified.
"""

from pynxm.state.store import DeviceStateStore
from pynxm.state.subscriptions import SubscriptionRegistry

__all__ = ["DeviceStateStore", "SubscriptionRegistry"]
