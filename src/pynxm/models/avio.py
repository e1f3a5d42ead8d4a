"""Port/endpoint inventory subsystem (``Device.AvioV2``)."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from pynxm.models._base import InputKey, NxmBaseModel, OutputKey, Version


class GlobalConfig(NxmBaseModel):
    global_edid: str
    global_edid_type: str


class Capabilities(NxmBaseModel):
    is_audio_routing_supported: bool
    is_video_routing_supported: bool
    is_usb_routing_supported: bool
    is_stream_routing_supported: bool


class Input(NxmBaseModel):
    id: str | None = None
    user_specified_name: str = Field(max_length=24)
    capabilities: Capabilities
    input_info: dict[str, Any] = Field(default_factory=dict)
    """Per-port signal detail (resolution, HDCP, audio format)."""


class Output(NxmBaseModel):
    id: str | None = None
    user_specified_name: str = Field(max_length=24)
    capabilities: Capabilities
    output_info: dict[str, Any] = Field(default_factory=dict)
    """Per-port sink detail (connection, colour space, EDID)."""


class AvioV2(NxmBaseModel):
    """Inputs and outputs of the switcher."""

    global_config: GlobalConfig
    inputs: dict[InputKey, Input]
    outputs: dict[OutputKey, Output]
    version: Version

    def input_names(self, *, video_only: bool = False) -> dict[str, str]:
        """Map input ids to user-specified names."""
        return {
            key: value.user_specified_name
            for key, value in self.inputs.items()
            if not video_only or value.capabilities.is_video_routing_supported
        }

    def output_names(self, *, video_only: bool = False) -> dict[str, str]:
        """Map output ids to user-specified names."""
        return {
            key: value.user_specified_name
            for key, value in self.outputs.items()
            if not video_only or value.capabilities.is_video_routing_supported
        }
