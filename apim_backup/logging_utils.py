"""Loguru configuration helpers for consistent structured logging."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from os import PathLike
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from apim_backup import APP_VERSION

PathLikeArg = Union[str, PathLike]

_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | "
    "run={extra[run_id]} | env={extra[environment]} | "
    "ver={extra[service_version]} | sha={extra[git_sha]} | {message}"
)
_STD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Azure SDK loggers are chatty at INFO (every HTTP request/response)
_SDK_LOGGERS = ("azure", "msal", "urllib3")


def _std_logging_sink(message) -> None:
    """Re-emit a Loguru record through the stdlib root logger."""
    record = message.record
    exc = record["exception"]
    exc_info = None
    if exc:
        exc_info = (exc.type, exc.value, exc.traceback)

    log_record = logging.LogRecord(
        name=record["name"],
        level=record["level"].no,
        pathname=record["file"].path,
        lineno=record["line"],
        msg=record["message"],
        args=(),
        exc_info=exc_info,
        func=record["function"],
    )
    for k, v in record["extra"].items():
        setattr(log_record, k, v)

    logging.getLogger().handle(log_record)


def _configure_sdk_loggers(level: int) -> None:
    for name in _SDK_LOGGERS:
        sdk_logger = logging.getLogger(name)
        sdk_logger.setLevel(max(level, logging.WARNING))
        if not getattr(sdk_logger, "_apim_backup_handler", False):
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(_STD_FORMAT))
            sdk_logger.addHandler(handler)
            sdk_logger._apim_backup_handler = True  # type: ignore[attr-defined]


def setup_logging(*, force: bool = False, level: str | None = None) -> None:
    """Configure Loguru sinks, bridge to stdlib, and attach contextual metadata."""
    if not force and getattr(setup_logging, "_configured", False):
        return

    logger.remove()

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    environment = os.getenv("ENV", "local")
    git_sha = (
        os.getenv("GIT_SHA")
        or os.getenv("COMMIT_SHA")
        or os.getenv("SOURCE_VERSION")
        or "unknown"
    )

    # defaults for every record; logging_context overrides them per scope
    logger.configure(
        extra={
            "service_version": APP_VERSION,
            "environment": environment,
            "git_sha": git_sha,
            "run_id": "-",
        },
    )

    logger.add(
        sys.stdout,
        level=log_level,
        format=_LOG_FORMAT,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )
    logger.add(
        _std_logging_sink,
        level=log_level,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )

    std_level = getattr(logging, log_level, logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(std_level)
    if not root_logger.handlers:
        # stdout already carries the Loguru sink; keep stdlib's last-resort handler quiet
        root_logger.addHandler(logging.NullHandler())
    _configure_sdk_loggers(std_level)
    setup_logging._configured = True  # type: ignore[attr-defined]


def setup_test_logging(
    target: Optional[PathLikeArg] = None,
    *,
    level: Optional[str] = None,
    filename: str = "pytest.log",
) -> None:
    """
    Lightweight logging setup for tests.

    ``target`` may be a directory (logs go to ``<dir>/<filename>``) or a file path.
    Without a target only the stdout sink and the stdlib bridge are installed.
    """
    effective_level = (level or os.getenv("PYTEST_LOGLEVEL") or "DEBUG").upper()
    setup_logging(force=True, level=effective_level)

    if target is None:
        return

    path = Path(target)
    if path.suffix != ".log":
        path.mkdir(parents=True, exist_ok=True)
        path = path / filename
    path.parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(path),
        level=effective_level,
        format=_LOG_FORMAT,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )


@contextmanager
def logging_context(**values: str):
    """Context manager to set structured logging fields (e.g., run_id)."""
    with logger.contextualize(**{key: value or "-" for key, value in values.items()}):
        yield


__all__ = ["setup_logging", "setup_test_logging", "logging_context"]
