"""
Structured logging configuration using structlog.

Two kinds of loggers live here:
- the process-wide structlog pipeline configured by ``setup_structlog`` and
  handed out by ``get_logger``
- standalone backends built by ``build_logger`` for a single middleware
  instance, which never touch global structlog state
"""

import logging
from datetime import timedelta
from typing import Any, Optional, Union

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


def parse_level(level: Union[int, str]) -> int:
    """
    Turn a level name or number into a stdlib logging level.

    Parameters
    ----------
    level : int | str
        ``logging.INFO``, ``20`` or ``"info"``

    Returns
    -------
    int
        The numeric logging level

    Raises
    ------
    ValueError
        If ``level`` is not a known level name
    """
    if isinstance(level, int):
        return level
    value = getattr(logging, level.upper(), None)
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def format_duration(value: timedelta) -> str:
    """
    Format ``value`` the way Go prints a ``time.Duration``.

    ``timedelta(milliseconds=50)`` becomes ``"50ms"``,
    ``timedelta(minutes=1, seconds=2.5)`` becomes ``"1m2.5s"``.
    """
    micros = value // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        whole, frac = divmod(micros, 1000)
        return f"{sign}{_trim(whole, frac, 3)}ms"
    seconds, frac = divmod(micros, 1_000_000)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    prefix = ""
    if hours:
        prefix = f"{hours}h{minutes}m"
    elif minutes:
        prefix = f"{minutes}m"
    return f"{sign}{prefix}{_trim(seconds, frac, 6)}s"


def _trim(whole: int, frac: int, digits: int) -> str:
    decimals = f"{frac:0{digits}d}".rstrip("0")
    return f"{whole}.{decimals}" if decimals else str(whole)


def render_durations(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace ``timedelta`` values, such as ``took``, with ``format_duration`` text."""
    for key, value in event_dict.items():
        if isinstance(value, timedelta):
            event_dict[key] = format_duration(value)
    return event_dict


def build_processors(*, use_json: bool = True, use_colors: bool = False) -> list[Processor]:
    """
    Build the processor chain shared by the global pipeline and standalone backends.

    Parameters
    ----------
    use_json : bool
        Whether to output logs in JSON format
    use_colors : bool
        Whether to use colored output (only applies when not using JSON)

    Returns
    -------
    list[Processor]
        Processors ending with a renderer
    """
    processors: list[Processor] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        render_durations,
    ]
    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=use_colors))
    return processors


def setup_structlog(
    *,
    service_name: str,
    log_level: str = "INFO",
    use_json: bool = True,
    use_colors: bool = False,
) -> None:
    """
    Configure structlog for structured logging.

    Parameters
    ----------
    service_name : str
        Name of the service for log context
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    use_json : bool
        Whether to output logs in JSON format
    use_colors : bool
        Whether to use colored output (only applies when not using JSON)
    """
    level = parse_level(log_level)

    # uvicorn keeps its own stdlib loggers, request lines come from the middleware
    logging.basicConfig(level=level, handlers=[logging.NullHandler()], force=True)
    logging.getLogger("uvicorn").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.access").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.error").setLevel(logging.CRITICAL)

    processors: list[Processor] = [structlog.contextvars.merge_contextvars]
    processors.extend(build_processors(use_json=use_json, use_colors=use_colors))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: Optional[str] = None) -> Any:
    """
    Get a structured logger instance from the global pipeline.

    Parameters
    ----------
    name : str | None
        Logger name (defaults to calling module name)

    Returns
    -------
    structlog.BoundLogger
        Configured structured logger
    """
    return structlog.get_logger(name)


def build_logger(level: Union[int, str] = logging.INFO, renderer: Optional[Processor] = None) -> Any:
    """
    Build a standalone structlog backend writing to stdout.

    Parameters
    ----------
    level : int | str
        Minimum level that is emitted
    renderer : Processor | None
        Final processor turning the event dict into output; defaults to the
        console renderer without colors

    Returns
    -------
    structlog.BoundLogger
        A logger with no bound fields
    """
    processors = build_processors(use_json=False)
    if renderer is not None:
        processors[-1] = renderer
    return structlog.wrap_logger(
        structlog.PrintLogger(),
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(parse_level(level)),
        context_class=dict,
    )


def _discard(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    raise structlog.DropEvent


def null_logger() -> Any:
    """Return a logger that accepts fields and events and emits nothing."""
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[_discard],
        wrapper_class=structlog.BoundLogger,
        context_class=dict,
    ).bind()
