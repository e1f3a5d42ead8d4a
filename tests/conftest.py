from __future__ import annotations

import copy
from typing import Any

import pytest


def _caps(*, video: bool = True) -> dict[str, bool]:
    return {
        "IsAudioRoutingSupported": True,
        "IsVideoRoutingSupported": video,
        "IsUsbRoutingSupported": False,
        "IsStreamRoutingSupported": False,
    }


_DEVICE: dict[str, Any] = {
    "AvioV2": {
        "GlobalConfig": {"GlobalEdid": "Default", "GlobalEdidType": "System"},
        "Inputs": {
            "Input1": {
                "UserSpecifiedName": "Laptop",
                "Capabilities": _caps(),
                "InputInfo": {"Ports": {"Port1": {"IsSyncDetected": True, "HorizontalResolution": 1920}}},
            },
            "Input2": {
                "UserSpecifiedName": "Camera",
                "Capabilities": _caps(),
                "InputInfo": {"Ports": {"Port1": {"IsSyncDetected": False, "HorizontalResolution": 0}}},
            },
        },
        "Outputs": {
            "Output1": {"UserSpecifiedName": "Projector", "Capabilities": _caps()},
            "Aux1": {"UserSpecifiedName": "Amplifier", "Capabilities": _caps(video=False)},
        },
        "Version": "2.1.0",
    },
    "AvMatrixRoutingV2": {
        "Config": {
            "Output1": {"AudioSourceConfigured": "Input1", "VideoSourceConfigured": "Input1"},
        },
        "Routes": {
            "Output1": {"AudioSource": "Input1", "VideoSource": "Input1"},
            "Aux1": {"AudioSource": "No Input"},
        },
        "IsAutomaticRoutingEnabled": False,
        "IsFollowOutputEnabled": True,
        "IsPriorityRoutingEnabled": False,
        "Version": "2.0.0",
    },
}


@pytest.fixture
def device_document() -> dict[str, Any]:
    """A complete ``Device`` subsystem mapping (without the root key)."""
    return copy.deepcopy(_DEVICE)
