"""Opt-in loguru output for tree builds.

cartkit logs under its package name and is disabled on import. A build emits
INFO records when it starts and finishes, one SPLIT record (level 15) per
chosen split, and DEBUG records for leaves and collapsed splits.

Importing this module removes loguru's default stderr handler so that
``enable_logging()`` output is not printed twice.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

SPLIT_LEVEL: Final[str] = "SPLIT"
SPLIT_LEVEL_NUMBER: Final[int] = 15  # Between DEBUG and INFO.


def _register_split_level() -> None:
    """Register the SPLIT level, warning if another package claimed the name first."""
    try:
        existing_level = logger.level(SPLIT_LEVEL)
    except ValueError:
        logger.level(SPLIT_LEVEL, no=SPLIT_LEVEL_NUMBER, icon="🌳")
    else:
        if existing_level.no != SPLIT_LEVEL_NUMBER:
            msg = f"Log level {SPLIT_LEVEL} already registered as {existing_level.no}, splits log at that level"
            warnings.warn(msg, stacklevel=2)


_register_split_level()

type LogLevel = Literal[
    "TRACE",
    "DEBUG",
    "SPLIT",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

type LogFormat = Literal["short", "full"]


class LoggingHandle:
    """An active cartkit stderr handler.

    Call `disable()`, or leave the `with` block, to remove it. Package
    logging is switched off again once no handle remains active.

    Examples:
        >>> with enable_logging(level="SPLIT"):  # doctest: +SKIP
        ...     tree = build(df, {"petal_length"}, "variety")
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove this handler; a second call does nothing."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return how many handles are still active."""
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = "INFO",
    log_format: LogFormat = "short",
) -> LoggingHandle:
    """Print cartkit build records to stderr.

    At "INFO" each build reports its row count and features when it starts,
    and the resulting depth and leaf count when it finishes. "SPLIT" adds the
    level, row count, feature, cutoff and metric of every chosen split.
    "DEBUG" also shows each leaf with the reason its node stopped splitting.
    Structured fields are printed after the message.

    Args:
        level (LogLevel): Minimum level to print. Defaults to "INFO".
        log_format (LogFormat): "short" (default) prefixes records with the
            function name, "full" with module:function:line.

    Returns:
        LoggingHandle: Handle that removes this handler when disabled.

    Examples:
        >>> handle = enable_logging(level="SPLIT")  # doctest: +SKIP
        >>> tree = build(df, {"petal_length", "petal_width"}, "variety")  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """
    logger.enable(PACKAGE_NAME)

    location = "<cyan>{function}</cyan>"
    if log_format == "full":
        location = "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>"
    format_str = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
        f"{location} - "
        "<level>{message}</level> {extra}"
    )

    handler_id = logger.add(sys.stderr, level=level, filter=_is_cartkit_record, format=format_str)
    return LoggingHandle(handler_id)


def _is_cartkit_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
