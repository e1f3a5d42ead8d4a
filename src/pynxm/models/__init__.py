"""Data models for the device document and outbound commands."""

from pynxm.models._base import NO_INPUT, NxmBaseModel
from pynxm.models.avio import AvioV2, Capabilities, GlobalConfig, Input, Output
from pynxm.models.command import Command, CommandMethod
from pynxm.models.device import (
    DEVICE_SCHEMA,
    REDEFINITION_SUBSYSTEMS,
    Device,
    Subsystem,
    parse_document,
    parse_partial,
    validate_subsystem,
)
from pynxm.models.routing import AvMatrixRoutingV2, Route, RouteConfig

__all__ = [
    "DEVICE_SCHEMA",
    "NO_INPUT",
    "REDEFINITION_SUBSYSTEMS",
    "AvMatrixRoutingV2",
    "AvioV2",
    "Capabilities",
    "Command",
    "CommandMethod",
    "Device",
    "GlobalConfig",
    "Input",
    "NxmBaseModel",
    "Output",
    "Route",
    "RouteConfig",
    "Subsystem",
    "parse_document",
    "parse_partial",
    "validate_subsystem",
]
