"""Logging setup: structured JSON on serverless platforms, plain text locally.

Every record carries the ``request_id`` of the HTTP request being served
(``-`` outside a request), so one JSON-RPC call can be followed from the
route through dispatch to the upstream call.
"""

from __future__ import annotations

import logging
import os
import uuid
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

# Set by Cloud Run, AWS Lambda and Netlify respectively.
_SERVERLESS_ENV_VARS = ("K_SERVICE", "AWS_LAMBDA_FUNCTION_NAME", "NETLIFY")

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamp the current request ID onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class SeverityJsonFormatter(JsonFormatter):
    """JSON formatter that reports the level as ``severity``."""

    def add_fields(
        self,
        log_record: dict[str, object],
        record: logging.LogRecord,
        message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["severity"] = record.levelname
        log_record.pop("levelname", None)


def is_serverless() -> bool:
    return any(os.getenv(name) for name in _SERVERLESS_ENV_VARS)


def setup_logging(*, level: str = "INFO") -> None:
    """Configure the root logger; safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    if is_serverless():
        handler.setFormatter(SeverityJsonFormatter(
            fmt="%(message)s %(name)s %(request_id)s",
            rename_fields={"name": "logger"},
        ))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s  %(message)s",
            datefmt="%H:%M:%S",
        ))

    root.addHandler(handler)


def generate_request_id() -> str:
    """Generate a unique request ID for trace correlation."""
    return uuid.uuid4().hex[:16]
