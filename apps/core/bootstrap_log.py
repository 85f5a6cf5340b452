"""
Fallback log for failures that happen before Django is configured.

The entrypoints construct one BootstrapLog at process start and hand it to
both the fatal-error shutdown hook and the bootstrap boundary. Writes go
straight to the file: the LOGGING dictConfig may not exist yet when they run.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from apps.core.exception_info import class_name, format_trace, origin

if TYPE_CHECKING:
    from apps.core.fatal_errors import LastError

LOG_FILE_ENV = "APP_LOG_FILE"
NO_TRACE = "No trace available"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class BootstrapLog:
    """
    Append-only writer for the shared application log file.

    GUARANTEES:
      - append() never raises
      - Each write opens, appends and closes the file (no buffering between calls)
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    """
    GOAL: Resolve the log file path used by both the fallback log and Django LOGGING.

    PARAMETERS:
      base_dir: Path - Project root directory - Not None

    RETURNS:
      Path - APP_LOG_FILE from the environment, or <base_dir>/logs/app.log

    RAISES:
      None
    """
    @staticmethod
    def default_path(base_dir: Path) -> Path:
        configured = (os.getenv(LOG_FILE_ENV, "") or "").strip()
        if configured:
            return Path(configured)
        return Path(base_dir) / "logs" / "app.log"

    @classmethod
    def for_base_dir(cls, base_dir: Path) -> "BootstrapLog":
        return cls(cls.default_path(base_dir))

    def append(self, text: str) -> bool:
        """
        Append text to the log file. Returns False when the write failed.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(text)
        except Exception:
            # Logging is fail-open: a broken log file must not take the process down.
            return False
        return True

    """
    GOAL: Append a fatal interpreter error recorded before or outside the framework.

    PARAMETERS:
      error: LastError - Recorded error (message, file, line, trace) - Not None

    RETURNS:
      bool - True if the entry was written

    RAISES:
      None

    GUARANTEES:
      - Entry starts with a "[timestamp] Fatal Error:" line
      - A missing trace is replaced by "No trace available"
    """
    def write_fatal(self, error: "LastError") -> bool:
        try:
            message = (
                f"[{self._timestamp()}] Fatal Error: {error.message} "
                f"in {error.file} on line {error.line}\n"
                f"Stack trace:\n{error.trace or NO_TRACE}\n"
            )
        except Exception:
            return False
        return self.append(message)

    """
    GOAL: Append a failure that escaped application bootstrap or dispatch.

    PARAMETERS:
      exc: BaseException - Escaped exception - Not None

    RETURNS:
      bool - True if the entry was written

    RAISES:
      None

    GUARANTEES:
      - Entry contains message, exception class, file, line and full trace
    """
    def write_bootstrap_failure(self, exc: BaseException) -> bool:
        try:
            file, line = origin(exc)
            message = (
                f"[{self._timestamp()}] Bootstrap Error: {exc}\n"
                f"Exception: {class_name(exc)}\n"
                f"File: {file}\n"
                f"Line: {line}\n"
                f"Trace:\n{format_trace(exc) or NO_TRACE}\n"
            )
        except Exception:
            return False
        return self.append(message)

    @staticmethod
    def _timestamp() -> str:
        return datetime.now().strftime(TIMESTAMP_FORMAT)
