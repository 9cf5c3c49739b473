"""
Import log sink.

The importers report skips, aborts and per-sheet counts through an injected
``ImportLog`` rather than a process-wide singleton. Entries are kept in memory
for display (and optional export) and forwarded to the standard ``logging``
module.
"""

import logging
import re
from datetime import datetime
from enum import Flag
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


class LogSeverity(Flag):
    """Severity flags for import log entries."""
    NONE = 0
    INFORMATION = 1
    EVENT = 2
    WARNING = 4
    ERROR = 8
    ALL = INFORMATION | EVENT | WARNING | ERROR


_LEVELS = {
    LogSeverity.INFORMATION: logging.INFO,
    LogSeverity.EVENT: logging.INFO,
    LogSeverity.WARNING: logging.WARNING,
    LogSeverity.ERROR: logging.ERROR,
}


class LogEntry:
    """A single entry in the import log."""

    def __init__(self, severity: LogSeverity, message: str):
        self.severity = severity
        self.timestamp = datetime.now()
        self.message = message
        self.is_excluded = False

    def __str__(self):
        return f"{self.severity.name}:{self.timestamp.strftime('%H:%M:%S.%f')[:-4]} {self.message}"


class ImportLog:
    """
    In-memory log of an import run.

    Messages matching any of the exclude patterns (see ``set_excludes``) are
    kept but hidden from ``get_logs``.
    """

    def __init__(self, excludes: Optional[str] = None, forward_to: Optional[logging.Logger] = None):
        self.enabled = True
        self.entries: List[LogEntry] = []
        self._excludes: List[str] = []
        self._logger = forward_to or logger
        if excludes:
            self.set_excludes(excludes)

    def _is_excluded(self, message: str) -> bool:
        return any(re.search(expr, message, re.IGNORECASE) for expr in self._excludes)

    def set_excludes(self, comma_list: str):
        """Set a comma list of regex patterns and re-evaluate existing entries."""
        self._excludes = [expr.strip() for expr in comma_list.split(',') if expr.strip()]
        for entry in self.entries:
            entry.is_excluded = self._is_excluded(entry.message)

    def record(self, severity: LogSeverity, message: str):
        """Log a message with the given severity."""
        if not self.enabled:
            return

        entry = LogEntry(severity, message)
        entry.is_excluded = self._is_excluded(message)
        self.entries.append(entry)
        self._logger.log(_LEVELS.get(severity, logging.INFO), message)

    def info(self, message: str):
        self.record(LogSeverity.INFORMATION, message)

    def warning(self, message: str):
        self.record(LogSeverity.WARNING, message)

    def error(self, message: str):
        self.record(LogSeverity.ERROR, message)

    def filtered(self, flags: LogSeverity = LogSeverity.ALL) -> List[LogEntry]:
        """Non-excluded entries matching the flags, newest first."""
        matching = [e for e in self.entries if (e.severity & flags) and not e.is_excluded]
        # Stable sort keeps recording order for entries sharing a timestamp
        return sorted(reversed(matching), key=lambda e: e.timestamp, reverse=True)

    def get_logs(self, flags: LogSeverity = LogSeverity.ALL) -> str:
        return ''.join(f"{entry}\n" for entry in self.filtered(flags))

    def messages(self, flags: LogSeverity = LogSeverity.ALL) -> List[str]:
        """Non-excluded messages in recording order."""
        return [e.message for e in self.entries if (e.severity & flags) and not e.is_excluded]

    def clear(self):
        self.entries.clear()

    def write_logs(self, path: Union[str, Path]):
        """Write all non-excluded entries, oldest first, to a text file."""
        lines = [f"{entry}\n" for entry in self.entries if not entry.is_excluded]
        try:
            Path(path).write_text(''.join(lines), encoding='utf-8')
        except OSError as e:
            raise OSError(f"Cannot write to path={path}. Err={e}") from e
