"""
Tests for console routes and the maintenance/database management commands.
"""

from __future__ import annotations

from io import StringIO

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.core.console import ClosureCommand, ConsoleRoutes, ConsoleUtility, argument, load_console_routes


def _run(name, *args):
    out = StringIO()
    call_command(ClosureCommand(load_console_routes().get(name)), *args, stdout=out)
    return out.getvalue()


class TestConsoleRoutes:
    """
    Tests for the console command registry.
    """

    def test_register_and_lookup(self):
        """
        GOAL: Verify decorated functions are registered under their name and sorted.
        """
        routes = ConsoleRoutes()

        @routes.command("greet", arguments=(argument("--name", default="world"),))
        def greet(command, **options):
            """Say hello."""
            return f"hello {options['name']}"

        @routes.command("cache_clear", help="Clear the cache")
        def cache_clear(command, **options):
            return None

        assert "greet" in routes
        assert len(routes) == 2
        assert routes.names() == ["cache_clear", "greet"]
        assert [route.name for route in routes] == ["cache_clear", "greet"]
        assert routes.get("greet").help == "Say hello."
        assert routes.get("greet").handler is greet

    def test_duplicate_name_is_rejected(self):
        """
        GOAL: Verify a command name can only be registered once.
        """
        routes = ConsoleRoutes()
        routes.command("greet")(lambda command, **options: None)

        with pytest.raises(ImproperlyConfigured):
            routes.command("greet")(lambda command, **options: None)

    def test_closure_command_passes_parsed_options(self):
        """
        GOAL: Verify ClosureCommand parses declared arguments and prints the returned string.
        """
        routes = ConsoleRoutes()

        @routes.command("greet", arguments=(argument("--name", default="world"),))
        def greet(command, **options):
            return f"hello {options['name']}"

        out = StringIO()
        call_command(ClosureCommand(routes.get("greet")), "--name=team", stdout=out)

        assert out.getvalue().strip() == "hello team"

    def test_configured_routes_are_loaded(self):
        """
        GOAL: Verify routes/console.py registers the shipped commands.
        """
        routes = load_console_routes()

        assert "route_list" in routes
        assert "about" in routes


class TestShippedConsoleCommands:
    """
    Tests for the commands registered in routes/console.py.
    """

    def test_route_list(self, settings):
        """
        GOAL: Verify route_list prints every URL pattern with its view.
        """
        output = _run("route_list")

        assert "/up" in output
        assert "/up/ready" in output
        assert "/api/test" in output
        assert "api_test" in output
        assert "apps.core.views.api_status" in output
        assert "Showing" in output

    def test_route_list_filter(self, settings):
        """
        GOAL: Verify --path limits the listing to matching routes.
        """
        output = _run("route_list", "--path=/api")

        assert "/api/test" in output
        assert "/up" not in output

    def test_route_list_without_matches(self, settings):
        output = _run("route_list", "--path=/nothing")

        assert "No routes matched." in output

    def test_about(self, settings):
        """
        GOAL: Verify about summarizes the application and its API pipeline.
        """
        output = _run("about")

        assert "Frontdesk" in output
        assert "api, api/*" in output
        assert "corsheaders.middleware.CorsMiddleware" in output
        assert "CSRF exempt" in output


class TestConsoleUtility:
    """
    Tests for the manage.py entrypoint.
    """

    def test_fetch_console_route(self, settings):
        """
        GOAL: Verify console routes are served as commands.
        """
        command = ConsoleUtility(["manage.py", "route_list"]).fetch_command("route_list")

        assert isinstance(command, ClosureCommand)
        assert command.route.name == "route_list"

    def test_fetch_app_command(self, settings):
        """
        GOAL: Verify regular management commands are still found.
        """
        command = ConsoleUtility(["manage.py", "down"]).fetch_command("down")

        assert not isinstance(command, ClosureCommand)

    def test_help_lists_console_section(self, settings):
        """
        GOAL: Verify the main help text lists console routes in their own section.
        """
        text = ConsoleUtility(["manage.py"]).main_help_text()

        assert "[console]" in text
        assert "route_list" in text

    def test_commands_only_includes_console_routes(self, settings):
        names = ConsoleUtility(["manage.py"]).main_help_text(commands_only=True).splitlines()

        assert "about" in names
        assert "down" in names
        assert names == sorted(names)

    def test_execute_runs_console_route(self, settings, capsys):
        """
        GOAL: Verify manage.py <route> executes the console function.
        """
        ConsoleUtility(["manage.py", "route_list", "--path=/up"]).execute()

        assert "/up" in capsys.readouterr().out


class TestMaintenanceCommands:
    """
    Tests for the down and up management commands.
    """

    def test_down_then_up(self, maintenance):
        """
        GOAL: Verify down writes the state file and up removes it.
        """
        out = StringIO()
        call_command("down", "--retry=60", "--message=Upgrading", "--except=up", "--except=api/status", stdout=out)

        assert "Application is now in maintenance mode." in out.getvalue()
        state = maintenance.state()
        assert state.retry == 60
        assert state.message == "Upgrading"
        assert state.except_paths == ["up", "api/status"]

        out = StringIO()
        call_command("up", stdout=out)

        assert "Application is now live." in out.getvalue()
        assert maintenance.is_active() is False

    def test_up_when_already_live(self, maintenance):
        out = StringIO()
        call_command("up", stdout=out)

        assert "Application is already up." in out.getvalue()

    def test_down_rejects_negative_retry(self, maintenance):
        """
        GOAL: Verify invalid options fail with CommandError and leave the site up.
        """
        with pytest.raises(CommandError):
            call_command("down", "--retry=-5", stdout=StringIO())

        assert maintenance.is_active() is False


class TestSqliteRemoveCommand:
    """
    Tests for the sqlite_remove management command.
    """

    def test_force_removes_database_and_journal(self, settings):
        """
        GOAL: Verify --force deletes both files without prompting.
        """
        database = settings.SQLITE_DATABASE_PATH
        journal = database.with_name(f"{database.name}-journal")
        database.write_bytes(b"SQLite format 3\x00")
        journal.write_bytes(b"")

        out = StringIO()
        call_command("sqlite_remove", "--force", stdout=out)

        assert not database.exists()
        assert not journal.exists()
        assert "Successfully removed 2 SQLite file(s)." in out.getvalue()

    def test_missing_files(self, settings):
        out = StringIO()
        call_command("sqlite_remove", "--force", stdout=out)

        assert f"SQLite file not found at: {settings.SQLITE_DATABASE_PATH}" in out.getvalue()
        assert "No SQLite files found to remove." in out.getvalue()

    def test_declined_confirmation_keeps_file(self, settings, monkeypatch):
        """
        GOAL: Verify answering "no" cancels the removal with a non-zero exit.
        """
        database = settings.SQLITE_DATABASE_PATH
        database.write_bytes(b"SQLite format 3\x00")
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        with pytest.raises(CommandError, match="Operation cancelled."):
            call_command("sqlite_remove", stdout=StringIO())

        assert database.exists()

    def test_confirmed_removal(self, settings, monkeypatch):
        database = settings.SQLITE_DATABASE_PATH
        database.write_bytes(b"SQLite format 3\x00")
        monkeypatch.setattr("builtins.input", lambda prompt: "yes")

        call_command("sqlite_remove", stdout=StringIO())

        assert not database.exists()
