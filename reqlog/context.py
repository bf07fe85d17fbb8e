"""
Request-scoped logger and response writer carried in the ASGI scope.

The scope is treated as immutable: ``to_context`` and ``add_writer_to_context``
return a shallow copy with one extra entry. Downstream code reads the logger
back with ``extract(request.scope)``, which never fails.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, MutableMapping, Optional

from starlette.types import Send

from reqlog.logging_config import null_logger


class _ContextKey:
    """Scope key that cannot collide with string keys or other components."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<reqlog context key {self.name}>"


_LOGGER_KEY = _ContextKey("logger")
_WRITER_KEY = _ContextKey("writer")


@dataclass(frozen=True)
class _LoggerCarrier:
    logger: Any
    fields: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def with_fields(self, fields: Mapping[str, Any]) -> "_LoggerCarrier":
        merged = dict(self.fields)
        merged.update(fields)
        return _LoggerCarrier(self.logger, MappingProxyType(merged))


def to_context(scope: Mapping[str, Any], logger: Any) -> dict:
    """
    Return a copy of ``scope`` carrying ``logger`` for later extraction.

    Parameters
    ----------
    scope : Mapping
        ASGI connection scope
    logger : structlog.BoundLogger
        Request logger to attach

    Returns
    -------
    dict
        The derived scope; ``scope`` itself is left untouched
    """
    derived = dict(scope)
    # bind() resolves lazy proxies, so extract always derives a new logger
    derived[_LOGGER_KEY] = _LoggerCarrier(logger.bind())
    return derived


def extract(scope: Mapping[str, Any]) -> Any:
    """
    Return the request logger stored by ``to_context``.

    Fields recorded through ``add_fields`` are bound onto the result. If the
    scope carries no logger, a logger that discards everything is returned,
    so callers never need to check for ``None``.
    """
    carrier = scope.get(_LOGGER_KEY)
    if not isinstance(carrier, _LoggerCarrier):
        return null_logger()
    return carrier.logger.bind(**carrier.fields)


def add_fields(scope: MutableMapping[str, Any], **fields: Any) -> None:
    """
    Record extra fields on the request logger stored in ``scope``.

    The carrier is replaced, not mutated, so loggers extracted earlier keep
    their fields. Later calls to ``extract`` on the same scope, including the
    one the middleware makes once the response is done, see the new fields.
    Does nothing when the scope carries no logger.
    """
    carrier = scope.get(_LOGGER_KEY)
    if not isinstance(carrier, _LoggerCarrier):
        return
    scope[_LOGGER_KEY] = carrier.with_fields(fields)


def add_writer_to_context(scope: Mapping[str, Any], send: Send) -> dict:
    """
    Return a copy of ``scope`` carrying the original ``send`` callable.

    Call this with a status-recording ``send`` before handing the request to
    middleware that wraps ``send`` in a private callable, so that an outer
    logging middleware can still read the final status code.
    """
    derived = dict(scope)
    derived[_WRITER_KEY] = send
    return derived


def extract_writer(scope: Mapping[str, Any]) -> Optional[Send]:
    """Return the ``send`` stored by ``add_writer_to_context``, or ``None``."""
    return scope.get(_WRITER_KEY)
