"""Full device document and the parse functions at the wire boundary.

The appliance wraps everything in a ``{"Device": {...}}`` root whose
keys are the subsystems (the unit of change notification).  A full
document is validated against :data:`DEVICE_SCHEMA`; a partial update
only has to have the right outer shape, its content is validated after
being merged into the snapshot.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ValidationError

from pynxm.exceptions import NxmProtocolError
from pynxm.models._base import NxmBaseModel
from pynxm.models.avio import AvioV2
from pynxm.models.routing import AvMatrixRoutingV2

ROOT_KEY = "Device"


class Subsystem(StrEnum):
    AVIO = "AvioV2"
    ROUTING = "AvMatrixRoutingV2"


#: Declared schema of the known subsystems.
DEVICE_SCHEMA: dict[str, type[BaseModel]] = {
    Subsystem.AVIO: AvioV2,
    Subsystem.ROUTING: AvMatrixRoutingV2,
}

#: Changes to these subsystems alter the choices offered by the adapter layer.
REDEFINITION_SUBSYSTEMS: frozenset[str] = frozenset({Subsystem.AVIO})


class Device(NxmBaseModel):
    """Typed read-only view of the mirrored state."""

    avio_v2: AvioV2
    av_matrix_routing_v2: AvMatrixRoutingV2


def _load(raw: str | bytes | Mapping[str, Any]) -> Any:
    if isinstance(raw, Mapping):
        return raw
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise NxmProtocolError(f"Payload is not JSON: {exc}") from exc


def unwrap_document(raw: str | bytes | Mapping[str, Any]) -> dict[str, Any]:
    document = _load(raw)
    if not isinstance(document, Mapping):
        raise NxmProtocolError("Payload is not a JSON object")
    inner = document.get(ROOT_KEY)
    if not isinstance(inner, Mapping):
        raise NxmProtocolError(f"Payload has no {ROOT_KEY!r} object")
    return dict(inner)


def validate_subsystem(
    key: str,
    value: Any,
    schema: Mapping[str, type[BaseModel]] = DEVICE_SCHEMA,
) -> None:
    """Validate one subsystem subtree against its declared model, if any."""
    model = schema.get(key)
    if model is None:
        return
    try:
        model.model_validate(value)
    except ValidationError as exc:
        raise NxmProtocolError(f"Subsystem {key} failed validation") from exc


def parse_document(
    raw: str | bytes | Mapping[str, Any],
    schema: Mapping[str, type[BaseModel]] = DEVICE_SCHEMA,
) -> dict[str, Any]:
    """Validate a complete device document and return its subsystem mapping."""
    inner = unwrap_document(raw)
    for key in schema:
        if key not in inner:
            raise NxmProtocolError(f"Device document is missing subsystem {key}")
        validate_subsystem(key, inner[key], schema)
    return inner


def parse_partial(raw: str | bytes | Mapping[str, Any]) -> dict[str, Any]:
    """Check a partial update's outer shape and return its subsystem mapping."""
    inner = unwrap_document(raw)
    for key, value in inner.items():
        if not isinstance(value, Mapping):
            raise NxmProtocolError(f"Subsystem {key} is not an object")
    return inner
