"""
Maintenance mode backed by a state file.

The front controller checks the file before bootstrapping Django, so a site
taken down stays down even when the framework cannot start. The `down` and
`up` management commands write and remove it.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from apps.core.request_utils import path_matches

logger = logging.getLogger(__name__)

MAINTENANCE_FILE_ENV = "MAINTENANCE_FILE"
SERVICE_UNAVAILABLE_BODY = json.dumps({"message": "Service Unavailable"}, separators=(",", ":")).encode()


class MaintenanceState(BaseModel):
    """
    Contents of the maintenance state file.
    """

    model_config = ConfigDict(populate_by_name=True)

    time: int = Field(..., ge=0, description="Unix time the application went down")
    retry: Optional[int] = Field(default=None, ge=0, description="Retry-After seconds")
    message: Optional[str] = Field(default=None, description="Operator note, not shown to clients")
    except_paths: list[str] = Field(
        default_factory=list,
        alias="except",
        description="Path patterns still served while down (e.g. 'up')",
    )


class MaintenanceMode:
    """
    Reads and toggles the maintenance state file.

    GUARANTEES:
      - is_active() is True iff the state file exists
      - A corrupt state file still counts as down, with default state
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    @classmethod
    def for_base_dir(cls, base_dir: Path) -> "MaintenanceMode":
        configured = (os.getenv(MAINTENANCE_FILE_ENV, "") or "").strip()
        if configured:
            return cls(configured)
        return cls(Path(base_dir) / "storage" / "framework" / "down")

    def is_active(self) -> bool:
        return self.path.exists()

    """
    GOAL: Load the current maintenance state.

    PARAMETERS:
      None

    RETURNS:
      Optional[MaintenanceState] - None when not in maintenance mode

    RAISES:
      None

    GUARANTEES:
      - Unreadable or invalid files yield a default state instead of an error
    """
    def state(self) -> Optional[MaintenanceState]:
        if not self.is_active():
            return None
        try:
            return MaintenanceState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Invalid maintenance state file %s: %s", self.path, exc)
            return MaintenanceState(time=int(time.time()))

    """
    GOAL: Put the application into maintenance mode.

    PARAMETERS:
      retry: Optional[int] - Seconds for the Retry-After header - Must be >= 0 if given
      message: Optional[str] - Operator note stored with the state - Optional
      except_paths: Iterable[str] - Path patterns that stay reachable - Can be empty

    RETURNS:
      MaintenanceState - The state that was written

    RAISES:
      pydantic.ValidationError: If retry is negative
      OSError: If the state file cannot be written
    """
    def activate(
        self,
        retry: Optional[int] = None,
        message: Optional[str] = None,
        except_paths: Iterable[str] = (),
    ) -> MaintenanceState:
        state = MaintenanceState(
            time=int(time.time()),
            retry=retry,
            message=message,
            except_paths=list(except_paths),
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(state.model_dump_json(by_alias=True), encoding="utf-8")
        return state

    def deactivate(self) -> bool:
        """Leave maintenance mode. Returns False if it was not active."""
        if not self.is_active():
            return False
        self.path.unlink(missing_ok=True)
        return True

    """
    GOAL: Build the WSGI response for a request arriving during maintenance.

    PARAMETERS:
      path: str - Request PATH_INFO - Can be empty

    RETURNS:
      Optional[tuple[str, list[tuple[str, str]], bytes]] - (status, headers, body), or None to serve normally

    RAISES:
      None

    GUARANTEES:
      - Returns None when not in maintenance mode or the path is excepted
      - Response is 503 JSON, with Retry-After when configured
    """
    def response_for(self, path: str) -> Optional[tuple[str, list[tuple[str, str]], bytes]]:
        state = self.state()
        if state is None or path_matches(path, state.except_paths):
            return None

        headers = [("Content-Type", "application/json")]
        if state.retry is not None:
            headers.append(("Retry-After", str(state.retry)))
        return "503 Service Unavailable", headers, SERVICE_UNAVAILABLE_BODY
