"""
Console routes served by manage.py alongside the app management commands.
"""

from typing import Any, Iterator

from django.conf import settings
from django.urls import URLPattern, URLResolver, get_resolver

from apps.core.console import argument, console
from apps.core.middleware import describe_pipeline


def iter_url_patterns(patterns: list[Any], prefix: str = "") -> Iterator[tuple[str, str, str]]:
    """Yield (route, name, view) for every pattern, descending into includes."""
    for pattern in patterns:
        route = prefix + str(pattern.pattern)
        if isinstance(pattern, URLResolver):
            yield from iter_url_patterns(pattern.url_patterns, route)
        elif isinstance(pattern, URLPattern):
            view = pattern.lookup_str
            yield "/" + route.lstrip("^").rstrip("$"), pattern.name or "", view


@console.command(
    "route_list",
    help="List all registered URL patterns.",
    arguments=(argument("--path", default="", help="Only show routes starting with this path"),),
)
def route_list(command, **options):
    rows = [row for row in iter_url_patterns(get_resolver().url_patterns) if row[0].startswith(options["path"])]
    if not rows:
        command.stdout.write(command.style.WARNING("No routes matched."))
        return

    width = max(len(row[0]) for row in rows)
    for route, name, view in rows:
        command.stdout.write(f"{route.ljust(width)}  {name or '-'}  {command.style.HTTP_INFO(view)}")
    command.stdout.write(f"\nShowing {len(rows)} routes")


@console.command("about", help="Display basic information about the application.")
def about(command, **options):
    pipeline = describe_pipeline()
    rows = [
        ("Application", settings.APP_NAME),
        ("Environment", getattr(settings, "DJANGO_ENV", "development")),
        ("Debug", "ENABLED" if settings.DEBUG else "OFF"),
        ("API routes", ", ".join(pipeline["api_patterns"])),
        ("API middleware", ", ".join(pipeline["api_middleware"]) or "-"),
        ("CSRF exempt", ", ".join(pipeline["csrf_except"]) or "-"),
        ("Log file", str(settings.APP_LOG_FILE)),
    ]
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        command.stdout.write(f"{label.ljust(width)}  {value}")
