import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    value = os.getenv(name, default)
    return [item.strip() for item in value.split(",") if item.strip()]


class CONFIG:
    """
    Configuration for the request logging middleware and the demo service.
    """

    # Service name bound to every log line emitted by the demo service
    SERVICE_NAME = os.getenv("REQLOG_SERVICE_NAME", "web")

    # Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Render logs as JSON (otherwise the structlog console renderer is used)
    LOG_JSON = _env_bool("LOG_JSON", True)

    # Colored console output, only used when LOG_JSON is false
    LOG_COLORS = _env_bool("LOG_COLORS", False)

    # Emit "started handling request" before dispatching
    LOG_STARTING = _env_bool("REQLOG_LOG_STARTING", True)

    # Request paths that are never logged
    EXCLUDED_URLS = _env_list("REQLOG_EXCLUDED_URLS", "/health")
