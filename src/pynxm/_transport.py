"""HTTP transport with cookie session management and anti-forgery token rotation."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from http.cookies import SimpleCookie
from typing import Any, Protocol

import aiohttp

from pynxm._constants import LOGIN_PATH, LOGOUT_PATH, USER_AGENT, XSRF_HEADER
from pynxm._redact import redact_for_log
from pynxm.config import NxmConfig
from pynxm.errors import network_code
from pynxm.exceptions import NxmAuthenticationError, NxmConfigError, NxmError, NxmTransportError
from pynxm.session import Session

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the supervisor.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`SessionTransport`) concrete.
    """

    @property
    def session(self) -> Session | None: ...

    async def connect(self, host: str) -> None: ...

    async def login(self, username: str, password: str) -> None: ...

    async def logout(self) -> None: ...

    async def get(self, path: str) -> Any: ...

    async def post(self, path: str, payload: Mapping[str, Any]) -> Any: ...

    async def ws_connect(self, path: str) -> aiohttp.ClientWebSocketResponse: ...

    async def close(self) -> None: ...


def to_transport_error(exc: BaseException, endpoint: str) -> NxmTransportError:
    """Convert an aiohttp/OS failure into a tagged :class:`NxmTransportError`."""
    if isinstance(exc, aiohttp.ClientResponseError):
        return NxmTransportError(
            f"HTTP {exc.status} from {endpoint}: {exc.message}",
            status_code=exc.status,
            endpoint=endpoint,
        )
    code = network_code(exc)
    return NxmTransportError(
        f"Request to {endpoint} failed ({code}): {exc}",
        network_code=code,
        endpoint=endpoint,
    )


class SessionTransport:
    """aiohttp transport that performs the login handshake and carries the session.

    Cookies are tracked from ``Set-Cookie`` headers and replayed on every
    request.  Every response is checked for a ``CREST-XSRF-TOKEN`` header
    and the held token is rotated synchronously before the response is
    returned, so no other request can observe a half-updated session.
    """

    def __init__(
        self,
        config: NxmConfig,
        *,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._external_http = http_session is not None
        self._http = http_session
        self._session: Session | None = None
        self._base_url = ""

    @property
    def session(self) -> Session | None:
        return self._session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, host: str) -> None:
        """Drop prior session material and bind a fresh HTTP session to *host*."""
        host = (host or "").strip()
        if not host:
            raise NxmConfigError("No host")
        await self.close()
        self._session = Session(host=host)
        self._base_url = f"https://{host}"
        if self._http is None:
            self._http = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(ssl=not self._config.allow_self_signed),
                cookie_jar=aiohttp.DummyCookieJar(),
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            )
        _logger.debug("Transport bound to %s", self._base_url)

    async def close(self) -> None:
        """Forget session material and release an owned HTTP session."""
        self._session = None
        if not self._external_http and self._http is not None:
            await self._http.close()
            self._http = None

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> None:
        """Priming GET for initial cookies, then form POST with credentials.

        Does not retry; the caller decides what to do with a failure.
        """
        session = self._require_session()
        await self._request("GET", LOGIN_PATH)
        _logger.debug("Session cookies after priming GET: %s", sorted(session.cookies))

        origin = self._base_url
        status, _text = await self._request(
            "POST",
            LOGIN_PATH,
            data={"login": username, "passwd": password},
            headers={"Origin": origin, "Referer": f"{origin}{LOGIN_PATH}"},
            raise_for_status=False,
        )
        if status in (401, 403, 511):
            raise NxmAuthenticationError(
                f"Login rejected with HTTP {status}",
                status_code=status,
                endpoint=LOGIN_PATH,
            )
        if status >= 400:
            raise NxmTransportError(f"HTTP {status} from {LOGIN_PATH}", status_code=status, endpoint=LOGIN_PATH)
        if not session.xsrf_token:
            raise NxmAuthenticationError("Login response carried no session token", endpoint=LOGIN_PATH)
        session.authenticated = True
        _logger.info("Logged in to %s", session.host)

    async def logout(self) -> None:
        """Best-effort logout.  Failures are logged, never raised."""
        session = self._session
        if session is None:
            return
        try:
            if session.authenticated:
                await self._request("GET", LOGOUT_PATH)
        except NxmError as exc:
            _logger.debug("Logout from %s failed: %s", session.host, exc)
        finally:
            session.authenticated = False
            session.xsrf_token = None
            session.cookies.clear()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def get(self, path: str) -> Any:
        _status, text = await self._request("GET", path)
        return self._decode_json(path, text)

    async def post(self, path: str, payload: Mapping[str, Any]) -> Any:
        _status, text = await self._request(
            "POST",
            path,
            data=json.dumps(payload, separators=(",", ":")),
            headers={"content-type": "application/json"},
        )
        if not text.strip():
            return None
        return self._decode_json(path, text)

    async def ws_connect(self, path: str) -> aiohttp.ClientWebSocketResponse:
        """Upgrade to the realtime websocket, carrying session cookies and token."""
        http = self._require_http()
        session = self._require_session()
        url = f"wss://{session.host}{path}"
        _logger.debug("WS upgrade %s", url)
        try:
            return await http.ws_connect(url, headers=self._headers(), heartbeat=None, autoping=True)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise to_transport_error(exc, path) from exc

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers: dict[str, str] = {"user-agent": USER_AGENT}
        session = self._session
        if session is not None:
            cookie = session.cookie_header()
            if cookie:
                headers["cookie"] = cookie
            if session.xsrf_token:
                headers[XSRF_HEADER] = session.xsrf_token
        if extra:
            headers.update(extra)
        return headers

    def _update_cookies(self, headers: Any) -> None:
        """Extract Set-Cookie headers and store them."""
        session = self._session
        if session is None:
            return
        for raw in headers.getall("Set-Cookie", []):
            cookie: SimpleCookie = SimpleCookie()
            cookie.load(raw)
            for key, morsel in cookie.items():
                if session.cookies.get(key) != morsel.value:
                    session.cookies[key] = morsel.value

    def _rotate_token(self, headers: Any) -> None:
        session = self._session
        if session is None:
            return
        if session.rotate_token(headers.get(XSRF_HEADER)):
            _logger.debug("Anti-forgery token rotated")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        data: Any = None,
        headers: Mapping[str, str] | None = None,
        raise_for_status: bool = True,
    ) -> tuple[int, str]:
        http = self._require_http()
        self._require_session()
        url = f"{self._base_url}{path}"
        request_headers = self._headers(headers)
        _logger.debug("%s %s headers=%s", method, url, redact_for_log(request_headers))
        if isinstance(data, Mapping):
            _logger.debug("%s %s form=%s", method, url, redact_for_log(data))

        try:
            async with http.request(method, url, data=data, headers=request_headers) as resp:
                self._update_cookies(resp.headers)
                self._rotate_token(resp.headers)
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise to_transport_error(exc, path) from exc

        _logger.debug("%s %s -> %s", method, path, status)
        if raise_for_status and status >= 400:
            raise NxmTransportError(
                f"HTTP {status} from {path}: {text[:200]}",
                status_code=status,
                endpoint=path,
            )
        return status, text

    @staticmethod
    def _decode_json(path: str, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise NxmTransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                network_code="ERR_BAD_RESPONSE",
                endpoint=path,
            ) from exc

    def _require_session(self) -> Session:
        if self._session is None:
            raise NxmError("Transport not connected. Call connect(host) first")
        return self._session

    def _require_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise NxmError("Transport not connected. Call connect(host) first")
        return self._http
