"""Command-line interface for robust-xhtml.

Provides the ``validate`` and ``repair`` commands with progress display,
configurable report formats and pipeline-friendly exit codes.
"""

from .main import main

__all__ = ["main"]
