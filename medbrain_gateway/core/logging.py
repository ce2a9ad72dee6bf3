"""
Console logging for the gateway (operators' side channel, stderr).

Every line carries the request it was emitted for (``client path``, or
``-`` outside a request).  The HTTP middleware binds it per request; the
value travels with the context into the threadpool that runs the routes.
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token

from medbrain_gateway.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(request)s | %(message)s"
NO_REQUEST = "-"

_request_context: ContextVar[str] = ContextVar("request_context", default=NO_REQUEST)


class RequestContextFilter(logging.Filter):
    """Adds ``record.request`` from the current request context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request = _request_context.get()
        return True


def bind_request_context(client_id: str, path: str) -> Token:
    return _request_context.set(f"{client_id} {path}")


def reset_request_context(token: Token) -> None:
    _request_context.reset(token)


def current_request_context() -> str:
    return _request_context.get()


def get_logger(name: str) -> logging.Logger:
    settings = get_settings()
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.addFilter(RequestContextFilter())
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger
