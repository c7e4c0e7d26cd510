"""Fluent builder for a single HTTP request under test."""

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Self, TypeAlias
from urllib.parse import quote

import aiohttp
from yarl import URL

from http_case_runner.asserter import AssertionSink
from http_case_runner.config import RunnerConfig
from http_case_runner.transport import open_session

log = logging.getLogger(__name__)

COOKIE_HEADER = "Cookie"
CONTENT_TYPE_HEADER = "Content-Type"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"
CHUNK_SIZE = 64 * 1024

# Left unescaped by encodeURIComponent in addition to alphanumerics and "-_.~".
FORM_SAFE_CHARS = "!*'()"


class ConfigurationError(Exception):
    """Raised when a test case is run before it is fully configured."""


class ResponseTooLargeError(Exception):
    """Raised when a response body exceeds the configured cap."""


@dataclass(frozen=True, kw_only=True)
class CapturedResponse:
    """A fully received response."""

    status: int
    headers: Mapping[str, str]
    body: bytes

    @property
    def text(self) -> str:
        """Body decoded as UTF-8, undecodable bytes replaced."""
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON."""
        return json.loads(self.body)


Verifier: TypeAlias = Callable[[CapturedResponse, AssertionSink], Awaitable[None] | None]


def default_port(scheme: str) -> int:
    """Port used when a URL does not name one."""
    return 443 if scheme == "https" else 80


@dataclass(frozen=True, kw_only=True)
class ResolvedTarget:
    """Concrete connection parameters for a request."""

    scheme: str
    host: str
    port: int
    path: str  # includes the query string

    @property
    def url(self) -> URL:
        """Request URL, leaving out the port when it is the scheme default."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port != default_port(self.scheme):
            host = f"{host}:{self.port}"
        return URL(f"{self.scheme}://{host}{self.path}", encoded=True)


def _indent(text: str) -> str:
    return "    " + text.replace("\n", "\n    ")


def _form_quote(value: object) -> str:
    # bool and None take their JSON spelling
    if value is None or isinstance(value, bool):
        value = json.dumps(value)
    return quote(str(value), safe=FORM_SAFE_CHARS)


def _has_header(headers: Iterable[str], name: str) -> bool:
    return any(key.lower() == name.lower() for key in headers)


class TestCase:
    """One HTTP request plus the hook that verifies its response.

    Builder methods return the instance so calls can be chained. The case is
    run at most once, after an asserter has been bound::

        case = (
            TestCase("https://example.com/login")
            .with_method("post")
            .with_form_encoded_payload({"user": "bob"})
            .with_verifier(lambda resp, asserter: asserter.equal(resp.status, 302))
        )
    """

    __test__ = False

    def __init__(
        self, target: str | URL, *, config: RunnerConfig | None = None
    ) -> None:
        self.target = target
        self.method = "GET"
        self.headers: dict[str, str] = {}
        self.cookies: dict[str, str] = {}
        self.payload: str | bytes | None = None
        self.verbose = False
        self.asserter: AssertionSink | None = None
        self.verifier: Verifier | None = None
        self.session: aiohttp.ClientSession | None = None
        self.config = config
        self._response: CapturedResponse | None = None

    @property
    def response(self) -> CapturedResponse | None:
        """The captured response, once the request has completed."""
        return self._response

    def with_method(self, method: str) -> Self:
        """Set the HTTP method; any string is accepted and uppercased."""
        self.method = method.upper()
        return self

    def with_header(self, key: str, value: str) -> Self:
        """Add a header to be sent with the request."""
        self.headers[key] = value
        return self

    def with_content_type(self, content_type: str) -> Self:
        """Set the ``Content-Type`` header."""
        return self.with_header(CONTENT_TYPE_HEADER, content_type)

    def with_cookie(self, name: str, value: str) -> Self:
        """Set a cookie on the request.

        Args:
            name: The raw cookie name; must not contain ``=`` or ``;``
            value: The raw cookie value; must not contain ``=`` or ``;``

        """
        self.cookies[name] = value
        return self

    def with_payload(self, payload: str | bytes) -> Self:
        """Set the raw request payload."""
        self.payload = payload
        return self

    def with_form_encoded_payload(self, payload: Mapping[str, Any]) -> Self:
        """Send ``payload`` form encoded and set the matching Content-Type."""
        parts = [
            f"{_form_quote(key)}={_form_quote(value)}" for key, value in payload.items()
        ]
        self.with_payload("&".join(parts))
        return self.with_content_type(FORM_CONTENT_TYPE)

    def with_json_payload(self, payload: Any) -> Self:
        """Send ``payload`` serialized as JSON and set the matching Content-Type."""
        self.with_payload(json.dumps(payload, separators=(",", ":")))
        return self.with_content_type(JSON_CONTENT_TYPE)

    def with_verifier(self, verifier: Verifier) -> Self:
        """Set the callback that inspects the response before completion.

        The verifier may be a coroutine function; it is awaited before the
        case signals completion.
        """
        self.verifier = verifier
        return self

    def with_session(self, session: aiohttp.ClientSession) -> Self:
        """Send through ``session`` instead of opening a private one."""
        self.session = session
        return self

    def with_config(self, config: RunnerConfig) -> Self:
        """Bind the run configuration (base URL, CA, body cap)."""
        self.config = config
        return self

    def dump(self) -> Self:
        """Log the request and the response once the response arrives."""
        self.verbose = True
        return self

    def set_asserter(self, asserter: AssertionSink) -> Self:
        """Bind the sink that records failures and completion."""
        self.asserter = asserter
        return self

    def resolve_target(self) -> ResolvedTarget:
        """Turn the target into host, port and path, applying the base URL."""
        url = self.target if isinstance(self.target, URL) else URL(self.target)
        if not url.absolute:
            base_url = self._config.base_url
            if not base_url:
                raise ConfigurationError(
                    f"Relative target {str(url)!r} needs a base URL to resolve against"
                )
            if "://" not in base_url:
                base_url = f"http://{base_url}"
            url = URL(base_url).join(url)

        scheme = url.scheme
        return ResolvedTarget(
            scheme=scheme,
            host=url.raw_host or "",
            port=url.explicit_port or default_port(scheme),
            path=url.raw_path_qs or "/",
        )

    def effective_headers(self) -> dict[str, str]:
        """Headers to send, including a Cookie header built from the cookies.

        An explicitly set Cookie header always wins over the cookies.
        """
        headers = dict(self.headers)
        if self.cookies and not _has_header(headers, COOKIE_HEADER):
            headers[COOKIE_HEADER] = "; ".join(
                f"{name}={value}" for name, value in self.cookies.items()
            )
        return headers

    async def run(self) -> None:
        """Send the request, capture the response and signal completion.

        Raises:
            ConfigurationError: If no asserter is bound or the target cannot be
                resolved. Nothing is sent in that case.

        """
        if self.asserter is None:
            raise ConfigurationError("No asserter has been configured")
        asserter = self.asserter
        target = self.resolve_target()

        try:
            if self.session is not None:
                response = await self._exchange(self.session, target)
            else:
                async with open_session(self._config) as session:
                    response = await self._exchange(session, target)
        except (aiohttp.ClientError, OSError) as exc:
            asserter.fail(f"Request for {self.target} failed. {exc}")
            asserter.done()
            return
        except ResponseTooLargeError as exc:
            asserter.fail(str(exc))
            asserter.done()
            return

        self._response = response
        await self._finalize(response, asserter)

    @property
    def _config(self) -> RunnerConfig:
        return self.config if self.config is not None else RunnerConfig()

    async def _exchange(
        self, session: aiohttp.ClientSession, target: ResolvedTarget
    ) -> CapturedResponse:
        headers = self.effective_headers()
        skip_auto_headers = (
            () if _has_header(headers, CONTENT_TYPE_HEADER) else (CONTENT_TYPE_HEADER,)
        )
        data = self.payload
        if isinstance(data, str):
            data = data.encode("utf-8")

        async with session.request(
            self.method,
            target.url,
            headers=headers,
            data=data or None,
            allow_redirects=False,
            skip_auto_headers=skip_auto_headers,
        ) as response:
            body = await self._read_body(response)
            return CapturedResponse(
                status=response.status, headers=response.headers, body=body
            )

    async def _read_body(self, response: aiohttp.ClientResponse) -> bytes:
        limit = self._config.max_body_bytes
        too_large = f"Response body for {self.target} exceeded {limit} bytes"
        if response.content_length is not None and response.content_length > limit:
            raise ResponseTooLargeError(too_large)

        body = bytearray()
        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
            body.extend(chunk)
            if len(body) > limit:
                raise ResponseTooLargeError(too_large)
        return bytes(body)

    async def _finalize(
        self, response: CapturedResponse, asserter: AssertionSink
    ) -> None:
        if self.verbose:
            self._dump_info(response)

        if self.verifier is not None:
            try:
                result = self.verifier(response, asserter)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                asserter.fail(
                    f"Verification of {self.target} raised {type(exc).__name__}: {exc}"
                )

        asserter.done()

    def _dump_info(self, response: CapturedResponse) -> None:
        log.info("Request URL: %s", self.target)
        log.info("Request Method: %s", self.method)
        log.info("Status Code: %d", response.status)

        if self.payload:
            payload = (
                self.payload.decode("utf-8", errors="replace")
                if isinstance(self.payload, bytes)
                else self.payload
            )
            log.info("Request Payload:\n%s", _indent(payload))

        request_headers = "\n".join(
            f"{key}: {value}" for key, value in self.effective_headers().items()
        )
        log.info("Request Headers:\n%s", _indent(request_headers))

        response_headers = "\n".join(
            f"{key}: {value}" for key, value in response.headers.items()
        )
        log.info("Response Headers:\n%s", _indent(response_headers))

        if response.body:
            log.info("Response Data:\n%s", _indent(response.text))
