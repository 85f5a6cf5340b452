"""
Console routes: management commands declared as plain functions.

The commands module named in config/app.py (routing.commands) registers
functions on the shared `console` registry:

    @console.command("route_list", help="List URL patterns")
    def route_list(command, **options):
        command.stdout.write(...)

manage.py runs ConsoleUtility, which serves these alongside the regular
management commands of installed apps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import import_module
from typing import Any, Callable, Iterator, Optional

from django.core.exceptions import ImproperlyConfigured
from django.core.management import ManagementUtility
from django.core.management.base import BaseCommand, CommandParser
from django.core.management.color import color_style

from apps.core.application import get_application

logger = logging.getLogger(__name__)

Argument = tuple[tuple[str, ...], dict[str, Any]]
CommandHandler = Callable[..., Optional[str]]

CONSOLE_SECTION = "console"


def argument(*flags: str, **kwargs: Any) -> Argument:
    """Describe one argparse argument for a console route."""
    return flags, kwargs


@dataclass(frozen=True)
class ConsoleCommand:
    name: str
    handler: CommandHandler
    help: str = ""
    arguments: tuple[Argument, ...] = ()


class ConsoleRoutes:
    """
    Registry of console commands.

    GUARANTEES:
      - Names are unique; registering a name twice raises ImproperlyConfigured
      - Iteration yields commands sorted by name
    """

    def __init__(self):
        self._commands: dict[str, ConsoleCommand] = {}

    def command(
        self,
        name: str,
        help: str = "",
        arguments: tuple[Argument, ...] = (),
    ) -> Callable[[CommandHandler], CommandHandler]:
        def decorator(handler: CommandHandler) -> CommandHandler:
            if name in self._commands:
                raise ImproperlyConfigured(f"Console command {name!r} is already registered")
            self._commands[name] = ConsoleCommand(
                name=name,
                handler=handler,
                help=help or (handler.__doc__ or "").strip(),
                arguments=tuple(arguments),
            )
            return handler

        return decorator

    def get(self, name: str) -> ConsoleCommand:
        return self._commands[name]

    def names(self) -> list[str]:
        return sorted(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[ConsoleCommand]:
        return (self._commands[name] for name in self.names())

    def __len__(self) -> int:
        return len(self._commands)


console = ConsoleRoutes()


"""
GOAL: Import the configured console route module so its commands register.

PARAMETERS:
  None

RETURNS:
  ConsoleRoutes - The shared registry - Never None

RAISES:
  ImproperlyConfigured: If APPLICATION is not configured
  ImportError: If routing.commands names a missing module

GUARANTEES:
  - Returns the registry unchanged when routing.commands is not set
  - Importing twice does not register commands twice (module import is cached)
"""
def load_console_routes() -> ConsoleRoutes:
    commands_module = get_application().routing.commands
    if commands_module:
        import_module(commands_module)
    return console


class ClosureCommand(BaseCommand):
    """
    BaseCommand adapter running a registered console function.

    The function receives this command (for stdout/stderr/style) and the
    parsed options as keyword arguments; a returned string is printed.
    """

    def __init__(self, route: ConsoleCommand, **kwargs: Any):
        super().__init__(**kwargs)
        self.route = route
        self.help = route.help

    def add_arguments(self, parser: CommandParser) -> None:
        for flags, kwargs in self.route.arguments:
            parser.add_argument(*flags, **kwargs)

    def handle(self, *args: Any, **options: Any) -> Optional[str]:
        logger.debug("Running console command %s", self.route.name)
        return self.route.handler(self, *args, **options)


class ConsoleUtility(ManagementUtility):
    """
    ManagementUtility that also serves commands from the console routes.

    Console routes take precedence over app commands with the same name.
    """

    def _console_routes(self) -> Optional[ConsoleRoutes]:
        try:
            return load_console_routes()
        except ImproperlyConfigured as exc:
            logger.debug("Console routes unavailable: %s", exc)
            return None

    def fetch_command(self, subcommand: str) -> BaseCommand:
        routes = self._console_routes()
        if routes is not None and subcommand in routes:
            return ClosureCommand(routes.get(subcommand))
        return super().fetch_command(subcommand)

    def main_help_text(self, commands_only: bool = False) -> str:
        text = super().main_help_text(commands_only=commands_only)
        routes = self._console_routes()
        if not routes:
            return text

        if commands_only:
            return "\n".join(sorted(text.splitlines() + routes.names()))

        lines = ["", color_style().NOTICE(f"[{CONSOLE_SECTION}]")]
        lines.extend(f"    {name}" for name in routes.names())
        return text + "\n" + "\n".join(lines) + "\n"
