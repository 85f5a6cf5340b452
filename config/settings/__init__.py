"""
Settings entrypoint: DJANGO_SETTINGS_MODULE=config.settings.

DJANGO_ENV selects the environment module (development, staging or
production). It may be set in the process environment or in the project's
.env file; the process environment wins.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

VALID_ENVIRONMENTS = {"development", "staging", "production"}

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


"""
GOAL: Get the current environment name from the DJANGO_ENV environment variable.

PARAMETERS:
  None

RETURNS:
  str - Environment name (development, staging, or production) - Always valid

RAISES:
  ValueError: If DJANGO_ENV is set but not in VALID_ENVIRONMENTS

GUARANTEES:
  - Defaults to 'development' if DJANGO_ENV is not set
"""
def get_environment() -> str:
    env = (os.getenv("DJANGO_ENV", "") or "development").lower().strip()

    if env not in VALID_ENVIRONMENTS:
        raise ValueError(
            f"Invalid DJANGO_ENV value: '{env}'. "
            f"Must be one of: {', '.join(sorted(VALID_ENVIRONMENTS))}"
        )

    return env


environment = get_environment()

if environment == "development":
    from .development import *  # noqa: F401, F403
elif environment == "staging":
    from .staging import *  # noqa: F401, F403
else:
    from .production import *  # noqa: F401, F403

DJANGO_ENV = environment
