"""Environment and dependency preflight checks.

Mindline needs a graphical session, GTK 4 with libadwaita, pycairo and a
writable data directory. Set MINDLINE_SKIP_PREFLIGHT=1 to bypass (useful
for development).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


SKIP_ENV = "MINDLINE_SKIP_PREFLIGHT"


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _has_display(env: Mapping[str, str]) -> bool:
    return bool(env.get("WAYLAND_DISPLAY") or env.get("DISPLAY"))


def _check_data_dir(data_dir: Path) -> Optional[str]:
    """Return an error message if the data directory cannot be used."""
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return f"Cannot create data directory {data_dir}: {exc}"
    if not os.access(data_dir, os.W_OK):
        return f"Data directory {data_dir} is not writable"
    return None


def _check_python_deps() -> Optional[str]:
    """Return an error message if required deps are missing."""
    try:
        import cairo  # type: ignore[import-not-found]  # noqa: F401
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip (pycairo) and ensure cairo is available. "
            f"Underlying error: {exc}"
        )

    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK 4 / libadwaita bindings. Install PyGObject plus the "
            "gtk4 and libadwaita system packages for your distribution. "
            f"Underlying error: {exc}"
        )

    return None


def run_preflight(
    *,
    require_display: bool = True,
    check_deps: bool = True,
    data_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> PreflightResult:
    """Run checks and return a structured result."""
    env = os.environ if env is None else env
    if env.get(SKIP_ENV) == "1":
        return PreflightResult(True, f"Preflight skipped via {SKIP_ENV}=1")

    if require_display and not _has_display(env):
        return PreflightResult(
            False,
            "No graphical session found (neither WAYLAND_DISPLAY nor DISPLAY is set). "
            f"Set {SKIP_ENV}=1 to bypass.",
        )

    if data_dir is None:
        data_dir = Path.home() / ".local" / "share" / "mindline"
    dir_error = _check_data_dir(data_dir)
    if dir_error:
        return PreflightResult(False, dir_error)

    if check_deps:
        dep_error = _check_python_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(
    *,
    require_display: bool = True,
    check_deps: bool = True,
) -> None:
    result = run_preflight(require_display=require_display, check_deps=check_deps)
    if result.ok:
        return

    sys.stderr.write("\nMindline preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    raise SystemExit(1)
