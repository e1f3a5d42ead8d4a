from __future__ import annotations

import asyncio
import contextlib
import errno
import socket
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import aiohttp
import pytest
from multidict import CIMultiDict

from pynxm._constants import XSRF_HEADER
from pynxm._transport import SessionTransport
from pynxm.config import NxmConfig
from pynxm.errors import classify
from pynxm.exceptions import NxmAuthenticationError, NxmConfigError, NxmError, NxmTransportError


@dataclass
class _FakeResponse:
    status: int = 200
    body: str = ""
    headers: CIMultiDict[str] = field(default_factory=CIMultiDict)

    async def text(self) -> str:
        return self.body


@dataclass
class _SentRequest:
    method: str
    path: str
    data: Any
    headers: dict[str, str]


class _FakeHttp:
    """Stands in for ``aiohttp.ClientSession.request``; replies are queued per path."""

    def __init__(self, host: str) -> None:
        self._prefix = f"https://{host}"
        self.replies: dict[tuple[str, str], list[_FakeResponse | BaseException]] = {}
        self.requests: list[_SentRequest] = []

    def reply(self, method: str, path: str, *responses: _FakeResponse | BaseException) -> None:
        self.replies.setdefault((method, path), []).extend(responses)

    @contextlib.asynccontextmanager
    async def request(
        self,
        method: str,
        url: str,
        *,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> AsyncIterator[_FakeResponse]:
        path = url.removeprefix(self._prefix)
        self.requests.append(_SentRequest(method, path, data, dict(headers or {})))
        queued = self.replies.get((method, path)) or [_FakeResponse(404, "not found")]
        reply = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(reply, BaseException):
            raise reply
        yield reply


def connector_error(os_error: OSError, host: str = "10.0.0.5") -> aiohttp.ClientConnectorError:
    """Build the error aiohttp raises when the TCP connect itself fails."""
    key = SimpleNamespace(host=host, port=443, ssl=True, is_ssl=True)
    return aiohttp.ClientConnectorError(key, os_error)  # type: ignore[arg-type]


def _headers(*pairs: tuple[str, str]) -> CIMultiDict[str]:
    return CIMultiDict(pairs)


async def _connected(host: str = "10.0.0.5") -> tuple[SessionTransport, _FakeHttp]:
    http = _FakeHttp(host)
    transport = SessionTransport(NxmConfig(host=host), http_session=http)  # type: ignore[arg-type]
    await transport.connect(host)
    return transport, http


def _arm_login(http: _FakeHttp, *, token: str | None = "tok-1", status: int = 200) -> None:
    http.reply("GET", "/userlogin.html", _FakeResponse(200, "<form/>", _headers(("Set-Cookie", "TrackID=abc; Path=/"))))
    login_headers = _headers(("Set-Cookie", "AuthByPasswd=xyz; Path=/; Secure"))
    if token is not None:
        login_headers.add(XSRF_HEADER, token)
    http.reply("POST", "/userlogin.html", _FakeResponse(status, "", login_headers))


@pytest.mark.asyncio
async def test_connect_rejects_empty_host() -> None:
    transport = SessionTransport(NxmConfig(host=""))
    with pytest.raises(NxmConfigError, match="No host"):
        await transport.connect("  ")
    assert transport.session is None


@pytest.mark.asyncio
async def test_requests_require_connect() -> None:
    transport = SessionTransport(NxmConfig(host="10.0.0.5"))
    with pytest.raises(NxmError, match="not connected"):
        await transport.get("/Device")


@pytest.mark.asyncio
async def test_login_collects_cookies_and_token() -> None:
    transport, http = await _connected()
    _arm_login(http)

    await transport.login("admin", "pw")

    session = transport.session
    assert session is not None
    assert session.authenticated
    assert session.xsrf_token == "tok-1"
    assert session.cookies == {"TrackID": "abc", "AuthByPasswd": "xyz"}

    priming, post = http.requests
    assert (priming.method, priming.path) == ("GET", "/userlogin.html")
    assert post.data == {"login": "admin", "passwd": "pw"}
    assert post.headers["cookie"] == "TrackID=abc"
    assert post.headers["Origin"] == "https://10.0.0.5"
    assert post.headers["Referer"] == "https://10.0.0.5/userlogin.html"


@pytest.mark.asyncio
async def test_token_rotates_and_is_echoed_on_later_requests() -> None:
    transport, http = await _connected()
    _arm_login(http)
    await transport.login("admin", "pw")
    http.reply(
        "GET",
        "/Device",
        _FakeResponse(200, '{"Device": {}}', _headers((XSRF_HEADER, "tok-2"))),
        _FakeResponse(200, '{"Device": {}}', _headers((XSRF_HEADER, "tok-2"))),
    )

    assert await transport.get("/Device") == {"Device": {}}
    await transport.get("/Device")

    first, second = http.requests[-2:]
    assert first.headers[XSRF_HEADER] == "tok-1"
    assert second.headers[XSRF_HEADER] == "tok-2"
    assert transport.session is not None
    assert transport.session.xsrf_token == "tok-2"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 511])
async def test_login_rejection_is_authentication_error(status: int) -> None:
    transport, http = await _connected()
    _arm_login(http, status=status)

    with pytest.raises(NxmAuthenticationError) as exc_info:
        await transport.login("admin", "wrong")

    assert exc_info.value.status_code == status
    assert transport.session is not None
    assert not transport.session.authenticated


@pytest.mark.asyncio
async def test_login_without_token_is_authentication_error() -> None:
    transport, http = await _connected()
    _arm_login(http, token=None)

    with pytest.raises(NxmAuthenticationError, match="no session token"):
        await transport.login("admin", "pw")


@pytest.mark.asyncio
async def test_server_error_during_login_is_transport_error() -> None:
    transport, http = await _connected()
    _arm_login(http, status=503)

    with pytest.raises(NxmTransportError) as exc_info:
        await transport.login("admin", "pw")

    assert not isinstance(exc_info.value, NxmAuthenticationError)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_connector_failures_keep_the_socket_errno() -> None:
    transport, http = await _connected()
    http.reply("GET", "/Device", connector_error(ConnectionRefusedError(errno.ECONNREFUSED, "Connect call failed")))
    http.reply("GET", "/Device/AvioV2", connector_error(OSError(errno.EHOSTUNREACH, "No route to host")))
    http.reply(
        "GET",
        "/Device/AvMatrixRoutingV2",
        connector_error(socket.gaierror(socket.EAI_NONAME, "Name or service not known")),
    )

    codes = []
    for path in ("/Device", "/Device/AvioV2", "/Device/AvMatrixRoutingV2"):
        with pytest.raises(NxmTransportError) as exc_info:
            await transport.get(path)
        assert exc_info.value.status_code is None
        codes.append(exc_info.value.network_code)

    assert codes == ["ECONNREFUSED", "EHOSTUNREACH", "ENOTFOUND"]


@pytest.mark.asyncio
async def test_refused_login_is_reconnect_worthy() -> None:
    transport, http = await _connected()
    http.reply("GET", "/userlogin.html", connector_error(ConnectionRefusedError(errno.ECONNREFUSED, "refused")))

    with pytest.raises(NxmTransportError) as exc_info:
        await transport.login("admin", "pw")

    classification = classify(exc_info.value)
    assert classification.reconnect
    assert classification.message == "Connection refused: Device may be offline or unreachable"


@pytest.mark.asyncio
async def test_low_level_failures_are_tagged() -> None:
    transport, http = await _connected()
    http.reply("GET", "/Device", ConnectionRefusedError(errno.ECONNREFUSED, "refused"))
    http.reply("GET", "/Device/AvioV2", asyncio.TimeoutError())

    with pytest.raises(NxmTransportError) as refused:
        await transport.get("/Device")
    with pytest.raises(NxmTransportError) as timeout:
        await transport.get("/Device/AvioV2")

    assert refused.value.network_code == "ECONNREFUSED"
    assert refused.value.status_code is None
    assert timeout.value.network_code == "ETIMEDOUT"


@pytest.mark.asyncio
async def test_invalid_json_is_bad_response() -> None:
    transport, http = await _connected()
    http.reply("GET", "/Device", _FakeResponse(200, "<html>"))

    with pytest.raises(NxmTransportError) as exc_info:
        await transport.get("/Device")

    assert exc_info.value.network_code == "ERR_BAD_RESPONSE"


@pytest.mark.asyncio
async def test_post_sends_compact_json() -> None:
    transport, http = await _connected()
    http.reply("POST", "/Device", _FakeResponse(200, ""))

    result = await transport.post("/Device", {"Device": {"AvMatrixRoutingV2": {"Routes": {}}}})

    assert result is None
    sent = http.requests[-1]
    assert sent.data == '{"Device":{"AvMatrixRoutingV2":{"Routes":{}}}}'
    assert sent.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_logout_is_best_effort() -> None:
    transport, http = await _connected()
    _arm_login(http)
    await transport.login("admin", "pw")
    http.reply("GET", "/logout", ConnectionResetError(errno.ECONNRESET, "reset"))

    await transport.logout()

    session = transport.session
    assert session is not None
    assert not session.authenticated
    assert session.xsrf_token is None
    assert session.cookies == {}


@pytest.mark.asyncio
async def test_reconnect_discards_prior_session() -> None:
    transport, http = await _connected()
    _arm_login(http)
    await transport.login("admin", "pw")
    old = transport.session

    await transport.connect("10.0.0.5")

    assert transport.session is not old
    assert transport.session is not None
    assert transport.session.xsrf_token is None
    assert transport.session.cookies == {}
