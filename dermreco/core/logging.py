# dermreco/core/logging.py
import logging
import sys
from contextvars import ContextVar

import colorlog

# Set per request by the X-Request-ID middleware (core/handlers.py)
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMAT = "%(log_color)s%(asctime)s %(levelname)-8s%(reset)s [%(request_id)s] %(blue)s%(name)s%(reset)s %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

QUIET_LOGGERS = ("pymongo", "httpx", "httpcore", "openai")


class RequestIdFilter(logging.Filter):
    """Stamps every record with the current request id so pipeline logs can be grepped per call."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def configure_logging(level: int = logging.INFO) -> None:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(colorlog.ColoredFormatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S", log_colors=LOG_COLORS))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for name in ("uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
