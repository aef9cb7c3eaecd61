"""Mindline launcher.

Provides a stable entry point that configures logging and runs preflight
checks before importing GTK-related modules, which gives clearer error
messages on new systems.
"""

from __future__ import annotations

import logging
import os


def _configure_logging() -> None:
    level_name = (os.environ.get("MINDLINE_LOG_LEVEL") or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> int:
    _configure_logging()

    from mindline.preflight import run_preflight_or_die

    run_preflight_or_die(check_deps=True)

    from mindline.app import main as app_main

    return int(app_main())


if __name__ == "__main__":
    raise SystemExit(main())
