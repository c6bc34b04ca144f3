"""
Process-wide logging for SkyCheck.

The server entrypoint calls ``setup_logging(level=..., job_name="skycheck")``
once; modules obtain loggers with ``get_tagged_logger(__name__, tag="...")``.
A dashboard request wraps its work in ``request_context()`` so every line it
produces, including lines from provider calls on worker threads, shares one
request id.

Records are rendered as

    2026-10-18 09:00:00 | INFO | skycheck | 3f9c0a1b2c4d | panel | skycheck.panel | Assembling dashboard ...

with DEBUG/INFO on stdout and WARNING and above on stderr.
"""

from __future__ import annotations

import contextvars
import logging
import logging.config
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

# Anything logged at import time, before setup_logging() runs, still gets a
# timestamp and a level.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

DEFAULT_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(job_name)s | %(request_id)s | %(tag)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
NO_REQUEST = "-"

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("skycheck_request_id", default=NO_REQUEST)
_CONFIGURED = False


class ContextFieldsFilter(logging.Filter):
    """
    Stamp `job_name`, `tag` and `request_id` on records that lack them.

    Third-party records (uvicorn, urllib3) get their logger's last name
    segment as tag, so "uvicorn.access" shows up as "access".
    """

    def __init__(self, job_name: Optional[str] = None) -> None:
        super().__init__()
        self.job_name = job_name or NO_REQUEST

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "job_name"):
            record.job_name = self.job_name
        if not hasattr(record, "tag"):
            record.tag = (record.name or NO_REQUEST).rsplit(".", 1)[-1]
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()
        return True


class LevelCeilingFilter(logging.Filter):
    """Drop records above `ceiling`; keeps warnings off stdout."""

    def __init__(self, ceiling: int) -> None:
        super().__init__()
        self.ceiling = ceiling

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        return record.levelno <= self.ceiling


def current_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a request id (generated when not given) for the duration of the block.

    Thread-pool work started inside the block keeps the id only when submitted
    through ``contextvars.copy_context().run``.
    """
    token = _request_id.set(request_id or uuid.uuid4().hex[:12])
    try:
        yield _request_id.get()
    finally:
        _request_id.reset(token)


def _stream_handler(stream: str, level: str, filters: List[str]) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "stream": f"ext://sys.{stream}",
        "level": level,
        "formatter": "pipe",
        "filters": filters,
    }


def build_logging_config(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
) -> Mapping[str, Any]:
    """dictConfig mapping: root logger at `level`, split across stdout/stderr."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "context": {"()": ContextFieldsFilter, "job_name": job_name},
            "info_and_below": {"()": LevelCeilingFilter, "ceiling": logging.INFO},
        },
        "formatters": {
            "pipe": {"format": log_format, "datefmt": date_format},
        },
        "handlers": {
            "stdout": _stream_handler("stdout", "DEBUG", ["context", "info_and_below"]),
            "stderr": _stream_handler("stderr", "WARNING", ["context"]),
        },
        "root": {"level": level, "handlers": ["stdout", "stderr"]},
    }


def setup_logging(
    *,
    level: str | int = "INFO",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    job_name: Optional[str] = None,
    override_existing: bool = False,
) -> None:
    """Apply build_logging_config(); later calls do nothing unless `override_existing`."""
    global _CONFIGURED
    if _CONFIGURED and not override_existing:
        return
    logging.config.dictConfig(
        build_logging_config(level=level, log_format=log_format, date_format=date_format, job_name=job_name)
    )
    _CONFIGURED = True


def get_tagged_logger(name: str, *, tag: Optional[str] = None) -> logging.LoggerAdapter:
    """LoggerAdapter whose records carry `tag` (default: last segment of `name`)."""
    return logging.LoggerAdapter(logging.getLogger(name), {"tag": tag or name.rsplit(".", 1)[-1]})
