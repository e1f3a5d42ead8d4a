"""Routing table subsystem (``Device.AvMatrixRoutingV2``)."""

from __future__ import annotations

from pydantic import Field

from pynxm.models._base import NxmBaseModel, OutputKey, SourceRef, Version


class RouteConfig(NxmBaseModel):
    audio_source_configured: SourceRef | None = None
    video_source_configured: SourceRef | None = None


class Route(NxmBaseModel):
    """Current sources of one destination.  Aux outputs carry audio only."""

    audio_source: SourceRef | None = None
    video_source: SourceRef | None = None


class AvMatrixRoutingV2(NxmBaseModel):
    route_config: dict[OutputKey, RouteConfig] = Field(alias="Config")
    routes: dict[OutputKey, Route]
    is_automatic_routing_enabled: bool
    is_follow_output_enabled: bool
    is_priority_routing_enabled: bool
    version: Version

    def video_source(self, output: str) -> str | None:
        route = self.routes.get(output)
        return route.video_source if route is not None else None

    def audio_source(self, output: str) -> str | None:
        route = self.routes.get(output)
        return route.audio_source if route is not None else None
