"""Tests for the device document models and command envelope."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from pynxm.exceptions import NxmProtocolError
from pynxm.models import (
    NO_INPUT,
    AvioV2,
    AvMatrixRoutingV2,
    Command,
    CommandMethod,
    Device,
    parse_document,
    parse_partial,
)

# ------------------------------------------------------------------
# Device document
# ------------------------------------------------------------------


class TestAvio:
    def test_pascal_case_keys_map_to_fields(self, device_document: dict[str, Any]) -> None:
        avio = AvioV2.model_validate(device_document["AvioV2"])
        assert avio.version == "2.1.0"
        assert avio.global_config.global_edid == "Default"
        assert avio.inputs["Input1"].input_info["Ports"]["Port1"]["HorizontalResolution"] == 1920

    def test_name_maps_filter_video(self, device_document: dict[str, Any]) -> None:
        avio = AvioV2.model_validate(device_document["AvioV2"])
        assert avio.output_names() == {"Output1": "Projector", "Aux1": "Amplifier"}
        assert avio.output_names(video_only=True) == {"Output1": "Projector"}

    def test_rejects_bad_port_key(self, device_document: dict[str, Any]) -> None:
        doc = device_document["AvioV2"]
        doc["Inputs"]["HDMI1"] = doc["Inputs"].pop("Input1")
        with pytest.raises(ValidationError):
            AvioV2.model_validate(doc)

    def test_rejects_long_name(self, device_document: dict[str, Any]) -> None:
        doc = device_document["AvioV2"]
        doc["Inputs"]["Input1"]["UserSpecifiedName"] = "x" * 25
        with pytest.raises(ValidationError):
            AvioV2.model_validate(doc)

    def test_models_are_frozen(self, device_document: dict[str, Any]) -> None:
        avio = AvioV2.model_validate(device_document["AvioV2"])
        with pytest.raises(ValidationError):
            avio.version = "3.0.0"  # type: ignore[misc]


class TestRouting:
    def test_routes_and_config(self, device_document: dict[str, Any]) -> None:
        routing = AvMatrixRoutingV2.model_validate(device_document["AvMatrixRoutingV2"])
        assert routing.video_source("Output1") == "Input1"
        assert routing.audio_source("Aux1") == NO_INPUT
        assert routing.video_source("Aux1") is None
        assert routing.video_source("Output9") is None
        assert routing.route_config["Output1"].video_source_configured == "Input1"
        assert routing.is_follow_output_enabled is True

    def test_rejects_unknown_source(self, device_document: dict[str, Any]) -> None:
        doc = device_document["AvMatrixRoutingV2"]
        doc["Routes"]["Output1"]["VideoSource"] = "Input"
        with pytest.raises(ValidationError):
            AvMatrixRoutingV2.model_validate(doc)


class TestParsing:
    def test_parse_document_returns_subsystems(self, device_document: dict[str, Any]) -> None:
        inner = parse_document({"Device": device_document})
        assert set(inner) == {"AvioV2", "AvMatrixRoutingV2"}
        device = Device.model_validate(inner)
        assert device.avio_v2.input_names(video_only=True) == {"Input1": "Laptop", "Input2": "Camera"}

    def test_parse_document_rejects_non_json(self) -> None:
        with pytest.raises(NxmProtocolError, match="not JSON"):
            parse_document("<html>login</html>")

    def test_parse_partial_accepts_sparse_update(self) -> None:
        partial = parse_partial('{"Device":{"AvMatrixRoutingV2":{"Routes":{"Output1":{"VideoSource":"Input2"}}}}}')
        assert partial == {"AvMatrixRoutingV2": {"Routes": {"Output1": {"VideoSource": "Input2"}}}}

    def test_parse_partial_rejects_scalar_subsystem(self) -> None:
        with pytest.raises(NxmProtocolError, match="not an object"):
            parse_partial({"Device": {"AvioV2": "2.1.0"}})

    def test_parse_partial_rejects_array_payload(self) -> None:
        with pytest.raises(NxmProtocolError, match="not a JSON object"):
            parse_partial(b"[1, 2]")


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


class TestCommand:
    def test_send_payload_is_compact_json(self) -> None:
        command = Command(
            method=CommandMethod.SEND,
            payload={"Device": {"AvMatrixRoutingV2": {"Routes": {"Output1": {"VideoSource": "Input2"}}}}},
        )
        assert command.channel_text() == '{"Device":{"AvMatrixRoutingV2":{"Routes":{"Output1":{"VideoSource":"Input2"}}}}}'

    def test_send_path_is_a_query(self) -> None:
        assert Command(method="SEND", path="/Device/AvioV2").channel_text() == "/Device/AvioV2"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"method": "POST", "path": "/Device"},
            {"method": "GET"},
            {"method": "SEND"},
            {"method": "DELETE", "path": "/Device"},
            {"method": "GET", "path": "/Device", "extra": 1},
        ],
    )
    def test_invalid_commands_are_rejected(self, kwargs: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            Command(**kwargs)
