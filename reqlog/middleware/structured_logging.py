"""
ASGI middleware logging each request as it goes in and the response as it goes out.
"""
import logging
import time
from datetime import timedelta
from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional, Protocol, Union

from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send
from structlog.types import Processor

from reqlog.context import extract, extract_writer, to_context
from reqlog.logging_config import build_logger
from reqlog.urls import InvalidURLError, validate_url
from reqlog.writer import StatusRecorder, StatusWriter, as_status_writer

# Replace or enrich the request logger before the request is dispatched
BeforeFunc = Callable[[Any, Request, str], Any]

# Replace or enrich the request logger once the response has been sent
AfterFunc = Callable[[Any, StatusWriter, timedelta, str], Any]

REQUEST_ID_HEADER = "X-Request-Id"
REAL_IP_HEADER = "X-Real-IP"


class Duration(timedelta):
    """``timedelta`` that keeps the exact nanosecond count it was measured with."""

    nanoseconds: int

    def __new__(cls, nanoseconds: int) -> "Duration":
        self = super().__new__(cls, microseconds=nanoseconds / 1000)
        self.nanoseconds = nanoseconds
        return self


class Clock(Protocol):
    def now(self) -> Any: ...

    def since(self, start: Any) -> timedelta: ...


class RealClock:
    """Monotonic clock measuring in nanoseconds."""

    def now(self) -> int:
        return time.perf_counter_ns()

    def since(self, start: int) -> Duration:
        return Duration(time.perf_counter_ns() - start)


def request_target(scope: Scope) -> str:
    """Return the request target as sent by the client: raw path plus query string."""
    raw_path = scope.get("raw_path")
    # some servers leave the query string on raw_path
    target = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        target = f"{target}?{query.decode('latin-1')}"
    return target


def remote_address(request: Request) -> str:
    """Prefer the ``X-Real-IP`` header over the transport peer address."""
    real_ip = request.headers.get(REAL_IP_HEADER)
    if real_ip:
        return real_ip
    client = request.scope.get("client")
    if not client:
        return ""
    host, port = client
    return f"{host}:{port}"


def status_text(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def latency_ns(latency: timedelta) -> int:
    if isinstance(latency, Duration):
        return latency.nanoseconds
    return (latency // timedelta(microseconds=1)) * 1000


def default_before(logger: Any, request: Request, remote_addr: str) -> Any:
    """Default ``before`` hook: bind request target, method and remote address."""
    return logger.bind(
        request=request_target(request.scope),
        method=request.method,
        remote=remote_addr,
    )


def default_after(logger: Any, writer: StatusWriter, latency: timedelta, name: str) -> Any:
    """Default ``after`` hook: bind status, latency and a latency measurement named after ``name``."""
    return logger.bind(
        **{
            "status": writer.status,
            "text_status": status_text(writer.status),
            "took": latency,
            f"measure#{name}.latency": latency_ns(latency),
        }
    )


class StructuredLoggingMiddleware:
    """
    Middleware logging the request as it goes in and the response as it goes out.

    For every HTTP request that is not excluded this middleware:
    - builds a request logger from ``logger``, bound to ``X-Request-Id`` and
      the fields added by the ``before`` hook
    - logs "started handling request" unless disabled with ``set_log_starting``
    - stores the request logger in the scope, see ``reqlog.context.extract``
    - once the app returns, logs "completed handling request" with the fields
      added by the ``after`` hook and any fields added downstream

    The status code is read from a ``StatusWriter``: the ``send`` this
    middleware receives, or the one stored with ``add_writer_to_context``
    when ``send`` has been wrapped by another middleware. Without either,
    nothing is logged on completion. Set ``record_status`` to have the
    middleware wrap ``send`` itself when it does not receive a ``StatusWriter``.

    Parameters
    ----------
    app : ASGIApp
        The next application in the chain
    logger : structlog.BoundLogger | None
        Backend for request loggers; defaults to ``build_logger()``
    name : str
        Name recorded in the ``measure#<name>.latency`` field
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: Any = None,
        name: str = "web",
        *,
        log_starting: bool = True,
        excluded_urls: Iterable[str] = (),
        before: Optional[BeforeFunc] = None,
        after: Optional[AfterFunc] = None,
        clock: Optional[Clock] = None,
        record_status: bool = False,
    ):
        self.app = app
        self.logger = logger if logger is not None else build_logger()
        self.name = name
        self.before = before or default_before
        self.after = after or default_after
        self.record_status = record_status
        self._log_starting = log_starting
        self._clock = clock or RealClock()
        self._excluded_urls: list[str] = []
        if isinstance(excluded_urls, str):
            excluded_urls = [excluded_urls]
        for url in excluded_urls:
            self.exclude_url(url)

    @classmethod
    def custom(
        cls,
        app: ASGIApp,
        level: Union[int, str] = logging.INFO,
        renderer: Optional[Processor] = None,
        name: str = "web",
        **kwargs: Any,
    ) -> "StructuredLoggingMiddleware":
        """Build a middleware with its own stdout backend at ``level``, rendered by ``renderer``."""
        return cls(app, build_logger(level, renderer), name, **kwargs)

    @classmethod
    def from_logger(cls, app: ASGIApp, logger: Any, name: str, **kwargs: Any) -> "StructuredLoggingMiddleware":
        """Build a middleware writing to an existing structlog logger."""
        return cls(app, logger, name, **kwargs)

    def set_log_starting(self, value: bool) -> None:
        """Control whether "started handling request" is logged before dispatching."""
        self._log_starting = value

    def exclude_url(self, url: str) -> None:
        """
        Stop logging requests whose path is exactly ``url``.

        ``url`` is parsed first and only added when it is valid. Not safe to
        call while requests are being served.

        Raises
        ------
        InvalidURLError
            If ``url`` cannot be parsed
        """
        validate_url(url)
        self._excluded_urls.append(url)

    def excluded_urls(self) -> list[str]:
        return list(self._excluded_urls)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # hooks may be reset to None after construction
        before = self.before or default_before
        after = self.after or default_after

        if scope.get("path", "") in self._excluded_urls:
            await self.app(scope, receive, send)
            return

        start = self._clock.now()

        request = Request(scope, receive)
        remote_addr = remote_address(request)

        logger = self.logger
        request_id = request.headers.get(REQUEST_ID_HEADER)
        if request_id:
            logger = logger.bind(request_id=request_id)

        logger = before(logger, request, remote_addr)

        if self._log_starting:
            logger.info("started handling request")

        writer = as_status_writer(send)
        if writer is None and self.record_status:
            writer = StatusRecorder(send)
            send = writer

        request_scope = to_context(scope, logger)
        await self.app(request_scope, receive, send)

        latency = self._clock.since(start)

        if writer is None:
            # send was wrapped by something that hides the status, try the
            # recorder stored upstream with add_writer_to_context
            writer = as_status_writer(extract_writer(scope))
        if writer is None:
            return

        # re-extract, handlers may have added fields with add_fields
        logger = extract(request_scope)
        after(logger, writer, latency, self.name).info("completed handling request")
