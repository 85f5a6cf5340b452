"""
Модуль мониторинга ошибок с интеграцией Sentry.

Отчёты о необработанных исключениях уходят в Sentry, если задан SENTRY_DSN.
Без DSN модуль ничего не отправляет, а приложение продолжает работать.
"""

import logging
from typing import Any, Dict, Optional

from sentry_sdk import capture_exception as sentry_capture_exception
from sentry_sdk import init as sentry_init
from sentry_sdk import new_scope as sentry_new_scope
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

# Глобальный флаг для отключения Sentry (например, в тестах)
_sentry_enabled: bool = False


"""
GOAL: Инициализировать Sentry SDK для мониторинга ошибок.

PARAMETERS:
  dsn: str - Sentry DSN (Data Source Name) - Пустая строка отключает мониторинг
  environment: str - Окружение (development, staging, production) - Не пустое
  traces_sample_rate: float - Частота сбора трассировок (0.0-1.0) - 0.0 <= value <= 1.0
  release: Optional[str] - Версия релиза - Может быть None

RETURNS:
  bool - True если Sentry инициализирован, False если отключен - Никогда не вызывает исключения

RAISES:
  None - Функция никогда не вызывает исключений

GUARANTEES:
  - При пустом DSN возвращает False и не инициализирует Sentry
  - При ошибке инициализации логирует ошибку и возвращает False
  - Глобальный флаг _sentry_enabled соответствует фактическому состоянию
  - Записи логов не превращаются в события: исключения отправляет report_exception
"""
def init_sentry(
    dsn: str,
    environment: str = "development",
    traces_sample_rate: float = 0.0,
    release: Optional[str] = None,
) -> bool:
    global _sentry_enabled

    if not dsn or dsn.strip() == "":
        logger.info("Sentry monitoring disabled: SENTRY_DSN is empty")
        _sentry_enabled = False
        return False

    try:
        sentry_init(
            dsn=dsn,
            environment=environment,
            traces_sample_rate=traces_sample_rate,
            release=release,
            integrations=[
                DjangoIntegration(),
                # Ошибки в логах остаются breadcrumbs, иначе каждое исключение ушло бы дважды
                LoggingIntegration(level=logging.INFO, event_level=None),
            ],
            ignore_errors=[KeyboardInterrupt, SystemExit],
        )
        _sentry_enabled = True
        logger.info("Sentry monitoring initialized", extra={"context": {"environment": environment}})
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
        _sentry_enabled = False
        return False


"""
GOAL: Отправить исключение в Sentry вместе с контекстом отчёта.

PARAMETERS:
  exception: BaseException - Исключение для отправки - Не None
  extra: Optional[Dict[str, Any]] - Контекст (класс, сообщение, файл, строка...) - Может быть None
  tags: Optional[Dict[str, str]] - Теги для группировки событий - Может быть None

RETURNS:
  Optional[str] - ID события в Sentry или None если Sentry отключен

RAISES:
  None - Функция никогда не вызывает исключений

GUARANTEES:
  - При отключенном Sentry возвращает None и ничего не логирует повторно
  - Контекст и теги применяются только к этому событию
"""
def capture_exception(
    exception: BaseException,
    extra: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    if not _sentry_enabled:
        return None

    try:
        with sentry_new_scope() as scope:
            if extra:
                scope.set_context("exception", extra)
            for key, value in (tags or {}).items():
                scope.set_tag(key, value)
            return sentry_capture_exception(exception)
    except Exception as e:
        logger.error(f"Failed to send exception to Sentry: {e}")
        return None


def is_sentry_enabled() -> bool:
    """
    Проверить статус мониторинга Sentry.
    """
    return _sentry_enabled
