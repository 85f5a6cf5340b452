"""
GOAL: Put the application into maintenance mode.

PARAMETERS:
  retry: Optional[int] - Seconds sent in the Retry-After header - Must be >= 0
  message: Optional[str] - Operator note stored in the state file - Optional
  except: list[str] - Path patterns still served while down - Repeatable

RETURNS:
  None - Command prints the result to stdout

RAISES:
  CommandError: If the state file cannot be written or retry is invalid

GUARANTEES:
  - The WSGI boundary answers 503 JSON for non-excepted paths afterwards
  - Running it again replaces the previous state
"""
import logging
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from pydantic import ValidationError

from apps.core.maintenance import MaintenanceMode


class Command(BaseCommand):
    help = "Put the application into maintenance mode"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.logger = logging.getLogger(__name__)

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--retry",
            type=int,
            default=None,
            help="Value of the Retry-After header, in seconds",
        )
        parser.add_argument(
            "--message",
            type=str,
            default=None,
            help="Note stored with the maintenance state",
        )
        parser.add_argument(
            "--except",
            dest="except_paths",
            action="append",
            default=[],
            help="Path pattern still served while down (e.g. 'up'). Repeatable",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        maintenance = MaintenanceMode.for_base_dir(settings.BASE_DIR)
        try:
            state = maintenance.activate(
                retry=options["retry"],
                message=options["message"],
                except_paths=options["except_paths"],
            )
        except ValidationError as exc:
            raise CommandError(f"Invalid maintenance options: {exc}") from exc
        except OSError as exc:
            raise CommandError(f"Cannot write {maintenance.path}: {exc}") from exc

        self.logger.warning(
            "Application is now in maintenance mode",
            extra={"context": state.model_dump(by_alias=True)},
        )
        self.stdout.write(self.style.WARNING("Application is now in maintenance mode."))
