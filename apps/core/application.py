"""
Declarative application assembly.

config/app.py describes the application once with ApplicationBuilder:
which route modules to mount, which middleware runs in front of the API,
which paths skip CSRF validation, and how exceptions are rendered and
reported. The resulting ApplicationConfig is read by the URLconf, the
middleware and the CLI entrypoint; it is located through settings.APPLICATION.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

if TYPE_CHECKING:
    from django.http import HttpRequest

RenderPolicy = Callable[["HttpRequest", BaseException], bool]
ReportSink = Callable[[BaseException], None]


def expects_json(request: HttpRequest, exc: BaseException) -> bool:
    """Default render policy: JSON only when the client asked for it."""
    accept = request.headers.get("Accept", "")
    return "/json" in accept or "+json" in accept


def _discard(exc: BaseException) -> None:
    return None


@dataclass(frozen=True)
class RoutingConfig:
    """
    Route modules and well-known paths.

    Module values are dotted paths to modules exposing `urlpatterns`
    (web, api) or registering console commands (commands).
    """

    web: Optional[str] = None
    api: Optional[str] = None
    commands: Optional[str] = None
    api_prefix: str = "api"
    health: Optional[str] = None

    @property
    def api_patterns(self) -> tuple[str, ...]:
        return (self.api_prefix, f"{self.api_prefix}/*")


@dataclass(frozen=True)
class MiddlewareConfig:
    api_prepend: tuple[str, ...] = ()
    csrf_except: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExceptionConfig:
    """Render policy and report sink for unhandled exceptions."""

    should_render_json: RenderPolicy = expects_json
    report: ReportSink = _discard


@dataclass(frozen=True)
class ApplicationConfig:
    base_dir: Path
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    middleware: MiddlewareConfig = field(default_factory=MiddlewareConfig)
    exceptions: ExceptionConfig = field(default_factory=ExceptionConfig)


class ApplicationBuilder:
    """
    Fluent builder producing an immutable ApplicationConfig.

    GUARANTEES:
      - Each with_* call replaces the previous value for that section
      - create() returns a frozen configuration
    """

    def __init__(self, base_dir: Path | str):
        self._base_dir = Path(base_dir)
        self._routing = RoutingConfig()
        self._middleware = MiddlewareConfig()
        self._exceptions = ExceptionConfig()

    """
    GOAL: Declare route modules, the API prefix and the health path.

    PARAMETERS:
      web: Optional[str] - Dotted path of browser-facing urlpatterns - Optional
      api: Optional[str] - Dotted path of API urlpatterns - Optional
      commands: Optional[str] - Dotted path of console routes - Optional
      api_prefix: str - Path prefix for API routes - Non-empty after stripping slashes
      health: Optional[str] - Health check path such as "/up" - Optional

    RETURNS:
      ApplicationBuilder - self

    RAISES:
      ImproperlyConfigured: If api_prefix is empty

    GUARANTEES:
      - api_prefix is stored without surrounding slashes
      - health is stored with exactly one leading slash
    """
    def with_routing(
        self,
        *,
        web: Optional[str] = None,
        api: Optional[str] = None,
        commands: Optional[str] = None,
        api_prefix: str = "api",
        health: Optional[str] = None,
    ) -> "ApplicationBuilder":
        prefix = (api_prefix or "").strip("/")
        if not prefix:
            raise ImproperlyConfigured("api_prefix must not be empty")

        self._routing = RoutingConfig(
            web=web,
            api=api,
            commands=commands,
            api_prefix=prefix,
            health="/" + health.strip("/") if health else None,
        )
        return self

    def with_middleware(
        self,
        *,
        api_prepend: Iterable[str] = (),
        csrf_except: Iterable[str] = (),
    ) -> "ApplicationBuilder":
        """
        Declare middleware run in front of API routes (outermost first)
        and the path patterns exempt from CSRF validation.
        """
        self._middleware = MiddlewareConfig(
            api_prepend=tuple(api_prepend),
            csrf_except=tuple(csrf_except),
        )
        return self

    def with_exceptions(
        self,
        *,
        render_json_when: RenderPolicy = expects_json,
        report: ReportSink = _discard,
    ) -> "ApplicationBuilder":
        self._exceptions = ExceptionConfig(should_render_json=render_json_when, report=report)
        return self

    def create(self) -> ApplicationConfig:
        return ApplicationConfig(
            base_dir=self._base_dir,
            routing=self._routing,
            middleware=self._middleware,
            exceptions=self._exceptions,
        )


def configure(base_dir: Path | str) -> ApplicationBuilder:
    """Start declaring an application rooted at base_dir."""
    return ApplicationBuilder(base_dir)


"""
GOAL: Return the active application configuration.

PARAMETERS:
  None

RETURNS:
  ApplicationConfig - Object named by settings.APPLICATION - Never None

RAISES:
  ImproperlyConfigured: If APPLICATION is missing or does not name an ApplicationConfig

GUARANTEES:
  - Resolved on every call, so tests can swap APPLICATION with override_settings
"""
def get_application() -> ApplicationConfig:
    dotted_path = getattr(settings, "APPLICATION", "")
    if not dotted_path:
        raise ImproperlyConfigured("The APPLICATION setting must name an ApplicationConfig")

    try:
        application = import_string(dotted_path)
    except ImportError as exc:
        raise ImproperlyConfigured(f"Cannot import APPLICATION {dotted_path!r}: {exc}") from exc

    if not isinstance(application, ApplicationConfig):
        raise ImproperlyConfigured(f"APPLICATION {dotted_path!r} is not an ApplicationConfig")
    return application
