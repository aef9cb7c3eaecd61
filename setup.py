#!/usr/bin/env python3
"""Setup script for Mindline."""

import os
import sys
from setuptools import setup, find_packages


def _run_install_preflight() -> None:
    """Fail fast on unusable environments.

    Note: installing from a wheel will not execute setup.py, so we also
    enforce this at runtime via `mindline.launcher`.
    """
    if os.environ.get("MINDLINE_SKIP_PREFLIGHT") == "1":
        return
    try:
        from mindline.preflight import run_preflight_or_die
        # Do NOT require a graphical session at install time, and do NOT
        # require Python deps before pip has had a chance to install them.
        run_preflight_or_die(require_display=False, check_deps=False)
    except SystemExit:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        sys.stderr.write("\nMindline preflight error while installing:\n")
        sys.stderr.write(str(exc) + "\n")
        raise SystemExit(1)


_run_install_preflight()

setup(
    name="mindline",
    version="1.0.0",
    description="Keyboard-driven mind maps with an editable outline",
    author="Mindline Project",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "PyGObject>=3.46.0",
        "pycairo>=1.25.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mindline=mindline.launcher:main",
        ],
        "gui_scripts": [
            "mindline-gui=mindline.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business",
    ],
)
