from __future__ import annotations

import csv
import io
import logging
import pathlib
import threading

from .rows import BUILDING, DATE, EMAIL, END_TIME, FLOOR, SPACE, SPACE_TYPE, START_TIME
from .timewindow import DEFAULT_END_TIME, DEFAULT_START_TIME


logger = logging.getLogger(__name__)

HEADER = (
    "Row",
    "Email Address",
    "Building Name",
    "Floor Name",
    "Space Name",
    "Space Type",
    "Date",
    "Start Time",
    "End Time",
    "Error",
)
HEADER_LINE = ",".join(HEADER)


def _format_line(values: list[str]) -> str:
    buf = io.StringIO()
    csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n").writerow(values)
    return buf.getvalue()


class FailureLog:
    """Append-only CSV of failed rows, shared by all workers.

    The header is checked and written under the same lock as the appends, the
    first time anything is logged.
    """

    def __init__(self, path: str | pathlib.Path) -> None:
        self.path = pathlib.Path(path)
        self._lock = threading.Lock()
        self._header_ready = False

    def _ensure_header(self) -> None:
        if self._header_ready:
            return
        needs_header = True
        if self.path.exists() and self.path.stat().st_size > 0:
            with self.path.open("r", encoding="utf-8", errors="replace", newline="") as handle:
                first = handle.readline().lstrip("\ufeff").rstrip("\r\n")
            needs_header = not first.startswith(HEADER_LINE)
        if needs_header:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8", newline="") as handle:
                handle.write(HEADER_LINE + "\n")
        self._header_ready = True

    def append(self, row: int, fields: dict[str, str], error: str, *, date_override: str | None = None) -> None:
        values = [
            str(row),
            fields.get(EMAIL, ""),
            fields.get(BUILDING, ""),
            fields.get(FLOOR, ""),
            fields.get(SPACE, ""),
            fields.get(SPACE_TYPE, ""),
            date_override or fields.get(DATE, ""),
            fields.get(START_TIME) or DEFAULT_START_TIME,
            fields.get(END_TIME) or DEFAULT_END_TIME,
            error,
        ]
        line = _format_line(values)
        with self._lock:
            self._ensure_header()
            with self.path.open("a", encoding="utf-8", newline="") as handle:
                handle.write(line)
        logger.debug("Logged failure for row %s to %s", row, self.path)
