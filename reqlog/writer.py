"""
Status-recording ``send`` wrappers.

ASGI gives middleware no way to read back the status of a response it did not
build. ``StatusRecorder`` wraps ``send`` and remembers what went through it;
``as_status_writer`` asks whether a given ``send`` is such a recorder.
"""

from typing import Optional, Protocol, runtime_checkable

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from reqlog.context import add_writer_to_context


@runtime_checkable
class StatusWriter(Protocol):
    """A ``send`` callable that can report the status code it sent."""

    status: int

    async def __call__(self, message: Message) -> None: ...


class StatusRecorder:
    """
    ``send`` wrapper recording status code and body size.

    ``status`` is 0 until ``http.response.start`` has been sent.
    """

    def __init__(self, send: Send):
        self._send = send
        self.status = 0
        self.size = 0
        self.written = False

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = int(message.get("status", 200))
            self.written = True
        elif message["type"] == "http.response.body":
            self.size += len(message.get("body", b""))
        await self._send(message)


def as_status_writer(send: Optional[Send]) -> Optional[StatusWriter]:
    """Return ``send`` if it exposes a recorded status, ``None`` otherwise."""
    if isinstance(send, StatusWriter):
        return send
    return None


class ResponseRecorderMiddleware:
    """
    Pass a ``StatusRecorder`` down the chain in place of ``send``.

    With ``preserve_writer`` the recorder is also stored in the scope through
    ``add_writer_to_context``. Use that when middleware further down wraps
    ``send`` in its own callable and a logging middleware sits behind it.
    """

    def __init__(self, app: ASGIApp, preserve_writer: bool = False):
        self.app = app
        self.preserve_writer = preserve_writer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        recorder = StatusRecorder(send)
        if self.preserve_writer:
            scope = add_writer_to_context(scope, recorder)
        await self.app(scope, receive, recorder)
