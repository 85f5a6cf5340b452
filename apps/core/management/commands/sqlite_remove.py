"""
GOAL: Remove the SQLite database file and its journal.

PARAMETERS:
  force: bool - Skip the confirmation prompt - Default False

RETURNS:
  None - Command prints results to stdout

RAISES:
  CommandError: If the operation is cancelled or the database file cannot be removed

GUARANTEES:
  - Missing files are reported, not treated as errors
  - A journal that cannot be removed is reported as a warning only
"""
import logging
from pathlib import Path
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = "Remove the SQLite database file and its journal if they exist"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.logger = logging.getLogger(__name__)

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--force",
            action="store_true",
            help="Force removal without confirmation",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        sqlite_path = Path(settings.SQLITE_DATABASE_PATH)
        journal_path = sqlite_path.with_name(f"{sqlite_path.name}-journal")
        removed = 0

        if sqlite_path.exists():
            if not options["force"] and not self._confirm(f"Remove SQLite file at: {sqlite_path}? [y/N] "):
                raise CommandError("Operation cancelled.", returncode=1)
            try:
                sqlite_path.unlink()
            except OSError as exc:
                raise CommandError(f"Failed to remove {sqlite_path}: {exc}") from exc
            self.stdout.write(self.style.SUCCESS(f"Removed: {sqlite_path}"))
            removed += 1
        else:
            self.stdout.write(f"SQLite file not found at: {sqlite_path}")

        if journal_path.exists():
            try:
                journal_path.unlink()
                self.stdout.write(self.style.SUCCESS(f"Removed: {journal_path}"))
                removed += 1
            except OSError as exc:
                self.stderr.write(self.style.WARNING(f"Failed to remove {journal_path}: {exc}"))

        if removed:
            self.logger.info("Removed SQLite files", extra={"context": {"count": removed}})
            self.stdout.write(self.style.SUCCESS(f"Successfully removed {removed} SQLite file(s)."))
        else:
            self.stdout.write("No SQLite files found to remove.")

    def _confirm(self, prompt: str) -> bool:
        return input(prompt).strip().lower() in {"y", "yes"}
