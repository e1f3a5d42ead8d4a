"""Base model and shared field types for the device document.

Every device model inherits from :class:`NxmBaseModel` which provides
``alias_generator=to_pascal`` so the appliance's PascalCase keys map
automatically to snake_case fields.  Models are frozen: they are
read-only views over the mirrored state.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_pascal

Version = Annotated[str, StringConstraints(pattern=r"^\d+\.\d+\.\d+$")]
"""Version string in ``X.Y.Z`` form (e.g. ``2.0.0``)."""

InputKey = Annotated[str, StringConstraints(pattern=r"^Input\d+$")]
OutputKey = Annotated[str, StringConstraints(pattern=r"^(Output|Aux)\d+$")]

NO_INPUT = "No Input"

SourceRef = Annotated[str, StringConstraints(pattern=r"^(Input\d+|No Input)$")]
"""A routable source: ``InputN`` or the literal ``"No Input"``."""


class NxmBaseModel(BaseModel):
    """Base for device document models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_pascal,
    )
