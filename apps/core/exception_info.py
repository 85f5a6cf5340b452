"""
Introspection helpers that describe an exception for log records.

Kept free of Django imports: the fallback bootstrap log uses these before
the framework is configured.
"""

from __future__ import annotations

import builtins
import traceback
from typing import Optional

UNKNOWN_FILE = "unknown"


def class_name(exc: BaseException) -> str:
    """Return the concrete class name, qualified by module for non-builtins."""
    exc_type = type(exc)
    if exc_type.__module__ == builtins.__name__:
        return exc_type.__qualname__
    return f"{exc_type.__module__}.{exc_type.__qualname__}"


"""
GOAL: Locate where an exception was raised.

PARAMETERS:
  exc: BaseException - Exception to inspect - Not None

RETURNS:
  tuple[str, int] - (file, line) of the innermost traceback frame

RAISES:
  None

GUARANTEES:
  - SyntaxError reports the offending source file and line
  - Exceptions without a traceback return ("unknown", 0)
"""
def origin(exc: BaseException) -> tuple[str, int]:
    if isinstance(exc, SyntaxError) and exc.filename:
        return exc.filename, exc.lineno or 0

    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    if not frames:
        return UNKNOWN_FILE, 0
    last = frames[-1]
    return last.filename, last.lineno or 0


def format_trace(exc: BaseException) -> str:
    """Render the traceback frames of exc, innermost last. Empty when not raised."""
    if exc.__traceback__ is None:
        return ""
    return "".join(traceback.format_tb(exc.__traceback__)).rstrip("\n")


"""
GOAL: Extract a numeric or symbolic code carried by an exception.

PARAMETERS:
  exc: BaseException - Exception to inspect - Not None

RETURNS:
  int | str - errno for OSError, the "code" attribute when it is an int or str, otherwise 0

RAISES:
  None

GUARANTEES:
  - Never returns None
"""
def exception_code(exc: BaseException) -> int | str:
    if isinstance(exc, OSError) and exc.errno is not None:
        return exc.errno
    code = getattr(exc, "code", None)
    if isinstance(code, (int, str)) and not isinstance(code, bool):
        return code
    return 0


def previous_exception(exc: BaseException) -> Optional[BaseException]:
    """Return the immediate cause: explicit __cause__, else unsuppressed __context__."""
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__
