from typing import Any, Optional

import click
import uvicorn
from fastapi import FastAPI, Request

from reqlog.config import CONFIG
from reqlog.context import add_fields, extract
from reqlog.logging_config import get_logger, setup_structlog
from reqlog.middleware.structured_logging import StructuredLoggingMiddleware
from reqlog.writer import ResponseRecorderMiddleware

# Set up structured logging
setup_structlog(
    service_name=CONFIG.SERVICE_NAME,
    log_level=CONFIG.LOG_LEVEL,
    use_json=CONFIG.LOG_JSON,
    use_colors=CONFIG.LOG_COLORS,
)


def create_app(access_logger: Any = None) -> FastAPI:
    """
    Build the demo application.

    Args:
        access_logger: structlog logger receiving the request logs; defaults
            to the globally configured pipeline
    """
    api = FastAPI(title="reqlog demo")

    @api.get("/health", tags=["Monitoring"], status_code=200, summary="Health check")
    async def health():
        return {"status": "ok"}

    @api.get("/echo/{name}", tags=["Endpoints"])
    async def echo(name: str, request: Request):
        # shows up in this line and in "completed handling request"
        add_fields(request.scope, echo_name=name)
        extract(request.scope).info("echoing name")
        return {"name": name}

    api.add_middleware(
        StructuredLoggingMiddleware,
        logger=access_logger if access_logger is not None else get_logger("reqlog.access"),
        name=CONFIG.SERVICE_NAME,
        log_starting=CONFIG.LOG_STARTING,
        excluded_urls=CONFIG.EXCLUDED_URLS,
    )
    # added last, so it wraps the logging middleware and hands it a StatusRecorder
    api.add_middleware(ResponseRecorderMiddleware)
    return api


app = create_app()


@click.command()
@click.option(
    "-h",
    "--host",
    metavar="HOST",
    default="0.0.0.0",
    help="Host for the webservice (default: 0.0.0.0)",
)
@click.option(
    "-p",
    "--port",
    metavar="PORT",
    default=9000,
    help="Port for the webservice (default: 9000)",
)
@click.version_option(package_name="asgi-request-logger")
def start(host: str, port: Optional[int] = None):
    # request lines come from StructuredLoggingMiddleware, not uvicorn
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    start()
