"""
PATH: manage.py

Command-line entrypoint for the marketplace finance backend.

Settings selection:
- An explicit DJANGO_SETTINGS_MODULE pointing at a concrete module wins
  (production sets backend.settings.prod).
- Unset, or pointing at the bare package "backend.settings", falls back to
  backend.settings.dev so INSTALLED_APPS is always loaded.

Useful commands:
- python manage.py migrate
- python manage.py seed_marketplace_chart
- python manage.py test accounting orders settlements
"""

from __future__ import annotations

import os
import sys

DEFAULT_SETTINGS_MODULE = "backend.settings.dev"


def _select_settings_module() -> str:
    requested = (os.environ.get("DJANGO_SETTINGS_MODULE") or "").strip()
    if requested in ("", "backend.settings"):
        requested = DEFAULT_SETTINGS_MODULE
    os.environ["DJANGO_SETTINGS_MODULE"] = requested
    return requested


def main() -> None:
    _select_settings_module()

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Django is not importable. Install the project "
            "(pip install -e .) inside an active virtual environment."
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
