"""pynxm - Async Python client for NVX/NXM-style AV matrix appliances."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pynxm")
except PackageNotFoundError:
    __version__ = "0+local"
from pynxm._constants import PRIORITY_COMMAND, PRIORITY_KEEPALIVE, PRIORITY_RESYNC, PRIORITY_SESSION
from pynxm.channel import RealtimeChannel
from pynxm.client import NxmClient
from pynxm.config import NxmConfig
from pynxm.dispatcher import Generation, RequestDispatcher
from pynxm.errors import Classification, ErrorKind, classify
from pynxm.exceptions import (
    NxmAuthenticationError,
    NxmCancelledError,
    NxmChannelClosedError,
    NxmConfigError,
    NxmDispatcherError,
    NxmError,
    NxmProtocolError,
    NxmTransportError,
)
from pynxm.models import (
    AvioV2,
    AvMatrixRoutingV2,
    Command,
    CommandMethod,
    Device,
    Subsystem,
)
from pynxm.state import DeviceStateStore, SubscriptionRegistry
from pynxm.status import ConnectionState, ConnectionStatus

__all__ = [
    "__version__",
    "PRIORITY_COMMAND",
    "PRIORITY_KEEPALIVE",
    "PRIORITY_RESYNC",
    "PRIORITY_SESSION",
    "AvMatrixRoutingV2",
    "AvioV2",
    "Classification",
    "Command",
    "CommandMethod",
    "ConnectionState",
    "ConnectionStatus",
    "Device",
    "DeviceStateStore",
    "ErrorKind",
    "Generation",
    "NxmAuthenticationError",
    "NxmCancelledError",
    "NxmChannelClosedError",
    "NxmClient",
    "NxmConfig",
    "NxmConfigError",
    "NxmDispatcherError",
    "NxmError",
    "NxmProtocolError",
    "NxmTransportError",
    "RealtimeChannel",
    "RequestDispatcher",
    "Subsystem",
    "SubscriptionRegistry",
    "classify",
]
