"""Internal constants shared across the library."""

USER_AGENT = "pynxm/1 (+aiohttp)"

#: Response/request header carrying the rotating anti-forgery token.
XSRF_HEADER = "CREST-XSRF-TOKEN"

# ------------------------------------------------------------------
# HTTP paths
# ------------------------------------------------------------------

LOGIN_PATH = "/userlogin.html"
LOGOUT_PATH = "/logout"
WS_UPGRADE_PATH = "/websockify"
DEVICE_PATH = "/Device"

# ------------------------------------------------------------------
# Websocket GET queries (sent as plain text over the channel)
# ------------------------------------------------------------------

WS_AVIO_QUERY = "/Device/AvioV2"
WS_ROUTING_QUERY = "/Device/AvMatrixRoutingV2"
WS_KEEPALIVE_QUERY = "/Device/AvMatrixRoutingV2/Version"

#: Queries issued on every channel open so the mirror starts from a full baseline.
RESYNC_QUERIES: tuple[str, ...] = (WS_AVIO_QUERY, WS_ROUTING_QUERY)

# ------------------------------------------------------------------
# Dispatcher priorities (lower runs sooner)
# ------------------------------------------------------------------

PRIORITY_SESSION = 0
PRIORITY_RESYNC = 1
PRIORITY_COMMAND = 5
PRIORITY_KEEPALIVE = 10
