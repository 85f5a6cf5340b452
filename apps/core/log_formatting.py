"""
Logging formatter that renders structured context after the message.

Call sites pass context through `extra`:

    logger.info("=== Response ===", extra={"context": {"status_code": 200}})

which is written as

    2024-01-01 12:00:00,000 INFO apps.core.request_logging === Response === {"status_code": 200}
"""

from __future__ import annotations

import json
import logging
from typing import Any


class ContextFormatter(logging.Formatter):
    """
    logging.Formatter that appends record.context as JSON when present.

    GUARANTEES:
      - Records without a context attribute are formatted unchanged
      - Non-JSON values are rendered with str()
    """

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        context: Any = getattr(record, "context", None)
        if not context:
            return formatted
        return f"{formatted} {json.dumps(context, ensure_ascii=False, default=str)}"
