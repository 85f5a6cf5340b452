import logging
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.core.maintenance import MaintenanceMode

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Bring the application out of maintenance mode"

    def handle(self, *args: Any, **options: Any) -> None:
        maintenance = MaintenanceMode.for_base_dir(settings.BASE_DIR)
        if not maintenance.deactivate():
            self.stdout.write(self.style.NOTICE("Application is already up."))
            return

        logger.info("Application is now live")
        self.stdout.write(self.style.SUCCESS("Application is now live."))
