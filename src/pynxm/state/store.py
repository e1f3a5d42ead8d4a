"""Canonical device snapshot and the partial-update merge.

This is the only component allowed to mutate the mirrored state.
"""

from __future__ import annotations

import copy
import logging
import operator
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel

from pynxm.models.device import (
    DEVICE_SCHEMA,
    ROOT_KEY,
    Device,
    parse_document,
    unwrap_document,
    validate_subsystem,
)

_logger = logging.getLogger(__name__)

Equality = Callable[[Any, Any], bool]

_MISSING = object()


def _differs(existing: Any, incoming: Any, equals: Equality) -> bool:
    """Whether applying *incoming* over *existing* would change anything.

    Stops at the first differing leaf.  A key present in *incoming* but
    absent from *existing* is a difference.
    """
    if isinstance(incoming, Mapping):
        if not isinstance(existing, Mapping):
            return True
        for key, value in incoming.items():
            current = existing.get(key, _MISSING)
            if current is _MISSING:
                return True
            if _differs(current, value, equals):
                return True
        return False
    if existing is _MISSING:
        return True
    return not equals(existing, incoming)


def _merge_into(target: dict[str, Any], patch: Mapping[str, Any]) -> None:
    """Recursively merge *patch* into *target*; non-mapping values overwrite."""
    for key, value in patch.items():
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
                continue
        target[key] = copy.deepcopy(value)


class DeviceStateStore:
    """Owns the canonical nested snapshot, keyed by subsystem.

    The store can only be built from a complete, schema-validated
    document.  After that, :meth:`merge` is the sole mutation path.

    Parameters
    ----------
    document : Mapping
        Subsystem mapping (the content of the ``Device`` root).
    schema : Mapping, optional
        Subsystem key -> pydantic model.  Every schema subsystem must be
        present in *document*; merged subsystems are re-validated
        against it before being committed.
    equals : callable, optional
        Leaf equality predicate used by the diff.
    """

    def __init__(
        self,
        document: Mapping[str, Any],
        *,
        schema: Mapping[str, type[BaseModel]] | None = None,
        equals: Equality = operator.eq,
    ) -> None:
        self._schema = DEVICE_SCHEMA if schema is None else schema
        self._equals = equals
        self._data: dict[str, Any] = copy.deepcopy(parse_document({ROOT_KEY: document}, self._schema))
        self._device: Device | None = None

    @classmethod
    def from_payload(
        cls,
        raw: str | bytes | Mapping[str, Any],
        **kwargs: Any,
    ) -> DeviceStateStore:
        """Build a store from a raw ``{"Device": {...}}`` response body."""
        return cls(unwrap_document(raw), **kwargs)

    def merge(self, partial: Mapping[str, Any]) -> set[str]:
        """Merge a partial update and return the changed subsystem keys.

        The snapshot is written only when at least one subsystem changed.
        Raises :class:`NxmProtocolError` without mutating anything when a
        merged subsystem would no longer satisfy its schema.
        """
        changed = {
            key
            for key, subtree in partial.items()
            if _differs(self._data.get(key, _MISSING), subtree, self._equals)
        }
        if not changed:
            return changed

        staged: dict[str, Any] = {}
        for key in changed:
            current = self._data.get(key)
            incoming = partial[key]
            if isinstance(current, dict) and isinstance(incoming, Mapping):
                merged = copy.deepcopy(current)
                _merge_into(merged, incoming)
            else:
                merged = copy.deepcopy(incoming)
            validate_subsystem(key, merged, self._schema)
            staged[key] = merged

        self._data.update(staged)
        self._device = None
        _logger.debug("Merged update; changed subsystems: %s", sorted(changed))
        return changed

    def snapshot(self) -> dict[str, Any]:
        """Return a detached copy of the full state."""
        return copy.deepcopy(self._data)

    def subsystem(self, key: str) -> dict[str, Any]:
        """Return a detached copy of one subsystem (empty if unknown)."""
        value = self._data.get(key)
        return copy.deepcopy(value) if isinstance(value, dict) else {}

    @property
    def subsystems(self) -> frozenset[str]:
        return frozenset(self._data)

    @property
    def device(self) -> Device:
        """Typed, frozen view of the known subsystems."""
        if self._device is None:
            self._device = Device.model_validate(self._data)
        return self._device
