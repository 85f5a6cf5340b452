"""
Process-exit logger for fatal interpreter errors.

Installs hooks that remember the last error the interpreter reported
(uncaught exceptions, uncaught thread exceptions, warnings) and registers an
atexit callback that appends it to the bootstrap log when it is fatal-class.
Covers failures that happen before Django can log anything itself.
"""

from __future__ import annotations

import atexit
import sys
import threading
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from apps.core.bootstrap_log import BootstrapLog
from apps.core.exception_info import class_name, format_trace, origin


class ErrorKind(str, Enum):
    """Severity tier of a recorded interpreter error."""

    FATAL = "fatal"
    CORE = "core"
    COMPILE = "compile"
    PARSE = "parse"
    RECOVERABLE = "recoverable"
    WARNING = "warning"


FATAL_KINDS = frozenset(
    {
        ErrorKind.FATAL,
        ErrorKind.CORE,
        ErrorKind.COMPILE,
        ErrorKind.PARSE,
        ErrorKind.RECOVERABLE,
    }
)


"""
GOAL: Map an uncaught exception type to its severity tier.

PARAMETERS:
  exc_type: type[BaseException] - Type of the uncaught exception - Not None

RETURNS:
  ErrorKind - PARSE, CORE, COMPILE or FATAL

RAISES:
  None

GUARANTEES:
  - SyntaxError and subclasses -> PARSE
  - SystemError, MemoryError, RecursionError -> CORE
  - ImportError and subclasses -> COMPILE
  - Everything else -> FATAL
"""
def classify(exc_type: type[BaseException]) -> ErrorKind:
    if issubclass(exc_type, SyntaxError):
        return ErrorKind.PARSE
    if issubclass(exc_type, (SystemError, MemoryError, RecursionError)):
        return ErrorKind.CORE
    if issubclass(exc_type, ImportError):
        return ErrorKind.COMPILE
    return ErrorKind.FATAL


@dataclass(frozen=True)
class LastError:
    """
    Snapshot of the most recent error reported by the interpreter.
    """

    kind: ErrorKind
    message: str
    file: str
    line: int
    trace: str = ""

    @property
    def is_fatal(self) -> bool:
        return self.kind in FATAL_KINDS

    @classmethod
    def from_exception(cls, exc: BaseException, kind: Optional[ErrorKind] = None) -> "LastError":
        file, line = origin(exc)
        return cls(
            kind=kind or classify(type(exc)),
            message=f"Uncaught {class_name(exc)}: {exc}",
            file=file,
            line=line,
            trace=format_trace(exc),
        )


class FatalErrorLogger:
    """
    Records the last interpreter error and logs it at exit if it is fatal.

    GUARANTEES:
      - flush() writes an entry iff the last recorded error kind is in FATAL_KINDS
      - Hooks always delegate to the hooks they replaced
      - No method raises
    """

    def __init__(self, log: BootstrapLog):
        self.log = log
        self.last_error: Optional[LastError] = None
        self._installed = False
        self._previous_excepthook: Optional[Callable[..., Any]] = None
        self._previous_threading_excepthook: Optional[Callable[..., Any]] = None
        self._previous_showwarning: Optional[Callable[..., Any]] = None

    @property
    def installed(self) -> bool:
        return self._installed

    """
    GOAL: Hook into the interpreter's error reporting and register the exit callback.

    PARAMETERS:
      register_atexit: bool - Register flush() with atexit - Default True

    RETURNS:
      FatalErrorLogger - self, for chaining

    RAISES:
      None

    GUARANTEES:
      - sys.excepthook, threading.excepthook and warnings.showwarning are wrapped
      - Calling install() twice is a no-op
    """
    def install(self, register_atexit: bool = True) -> "FatalErrorLogger":
        if self._installed:
            return self

        self._previous_excepthook = sys.excepthook
        self._previous_threading_excepthook = threading.excepthook
        self._previous_showwarning = warnings.showwarning

        sys.excepthook = self._excepthook
        threading.excepthook = self._threading_excepthook
        warnings.showwarning = self._showwarning

        if register_atexit:
            atexit.register(self.flush)
        self._installed = True
        return self

    def uninstall(self) -> None:
        """Restore the replaced hooks and drop the exit callback."""
        if not self._installed:
            return

        sys.excepthook = self._previous_excepthook
        threading.excepthook = self._previous_threading_excepthook
        warnings.showwarning = self._previous_showwarning
        atexit.unregister(self.flush)
        self._installed = False

    def record(self, error: LastError) -> None:
        self.last_error = error

    """
    GOAL: Exit callback. Append the last recorded error to the bootstrap log if it is fatal.

    PARAMETERS:
      None

    RETURNS:
      bool - True if an entry was written

    RAISES:
      None

    GUARANTEES:
      - Uses the error recorded by the hooks, else the interpreter's sys.last_exc / sys.last_value
      - Non-fatal errors (warnings) are never written
      - Write failures are discarded
    """
    def flush(self) -> bool:
        try:
            error = self.last_error or self._interpreter_last_error()
            if error is None or not error.is_fatal:
                return False
            return self.log.write_fatal(error)
        except Exception:
            return False

    def _interpreter_last_error(self) -> Optional[LastError]:
        exc = getattr(sys, "last_exc", None) or getattr(sys, "last_value", None)
        if isinstance(exc, Exception):
            return LastError.from_exception(exc)
        return None

    def _excepthook(self, exc_type: type[BaseException], exc: BaseException, tb: Any) -> None:
        if issubclass(exc_type, Exception) and exc is not None:
            try:
                if exc.__traceback__ is None and tb is not None:
                    exc = exc.with_traceback(tb)
                self.record(LastError.from_exception(exc))
            except Exception:
                pass
        self._previous_excepthook(exc_type, exc, tb)

    def _threading_excepthook(self, args: Any) -> None:
        if issubclass(args.exc_type, Exception) and args.exc_value is not None:
            try:
                self.record(LastError.from_exception(args.exc_value, kind=ErrorKind.RECOVERABLE))
            except Exception:
                pass
        self._previous_threading_excepthook(args)

    def _showwarning(
        self,
        message: Any,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: Any = None,
        line: Optional[str] = None,
    ) -> None:
        self.record(
            LastError(
                kind=ErrorKind.WARNING,
                message=f"{category.__name__}: {message}",
                file=filename,
                line=lineno,
            )
        )
        self._previous_showwarning(message, category, filename, lineno, file, line)


def install_fatal_error_logger(log: BootstrapLog) -> FatalErrorLogger:
    """Create a FatalErrorLogger for log and install it for the process lifetime."""
    return FatalErrorLogger(log).install()
