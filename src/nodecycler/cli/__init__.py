# src/nodecycler/cli/__init__.py
"""
nodecycler CLI Package

This package exposes the top-level Typer `app` so tests and the console
entrypoint can import `nodecycler.cli.app`.
"""

import logging

from ..reporters.console_reporter import ConsoleReporter
from .main import app

logger = logging.getLogger(__name__)

__all__ = ["app", "ConsoleReporter"]
