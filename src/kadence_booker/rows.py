from __future__ import annotations

import csv
from dataclasses import dataclass, field
import pathlib
from typing import Any, Mapping

from .errors import ValidationError
from .timewindow import parse_date


EMAIL = "email"
BUILDING = "building_name"
FLOOR = "floor_name"
SPACE = "space_name"
SPACE_TYPE = "space_type"
DATE = "date"
START_TIME = "start_time"
END_TIME = "end_time"

REQUIRED_FIELDS = (EMAIL, BUILDING, FLOOR, SPACE)

# Human labels, also the strict header names and the failure-log columns.
FIELD_LABELS: dict[str, str] = {
    EMAIL: "Email Address",
    BUILDING: "Building Name",
    FLOOR: "Floor Name",
    SPACE: "Space Name",
    SPACE_TYPE: "Space Type",
    DATE: "Date",
    START_TIME: "Start Time",
    END_TIME: "End Time",
}


@dataclass(frozen=True)
class ColumnMap:
    """Maps logical row fields to the CSV headers that may carry them."""

    aliases: Mapping[str, tuple[str, ...]]
    case_insensitive: bool = True

    def _key(self, header: str) -> str:
        header = header.strip()
        return header.lower() if self.case_insensitive else header

    def extract(self, record: Mapping[str, Any]) -> dict[str, str]:
        by_header: dict[str, str] = {}
        for header, value in record.items():
            if header is None:
                continue
            key = self._key(str(header))
            # First occurrence wins when two headers normalize the same way.
            by_header.setdefault(key, "" if value is None else str(value).strip())

        fields: dict[str, str] = {}
        for name, headers in self.aliases.items():
            fields[name] = ""
            for header in headers:
                value = by_header.get(self._key(header), "")
                if value:
                    fields[name] = value
                    break
        return fields


DEFAULT_COLUMNS = ColumnMap(
    aliases={
        EMAIL: ("email address", "email"),
        BUILDING: ("building name", "building"),
        FLOOR: ("floor name", "floor"),
        SPACE: ("space name", "desk name", "space", "desk"),
        SPACE_TYPE: ("space type", "type"),
        DATE: ("date",),
        START_TIME: ("start time",),
        END_TIME: ("end time",),
    },
)

STRICT_COLUMNS = ColumnMap(
    aliases={name: (label,) for name, label in FIELD_LABELS.items()},
    case_insensitive=False,
)


@dataclass(frozen=True)
class InputRow:
    email: str
    building_name: str
    floor_name: str
    space_name: str
    date: str
    space_type: str | None = None
    start_time: str | None = None
    end_time: str | None = None


@dataclass(frozen=True)
class CsvRecord:
    """A raw CSV record with its 1-based position among the data rows."""

    row: int
    fields: dict[str, str] = field(default_factory=dict)


def validate_row(fields: Mapping[str, str], *, date_override: str | None = None) -> InputRow:
    required = list(REQUIRED_FIELDS)
    if not date_override:
        required.append(DATE)
    missing = [FIELD_LABELS[name] for name in required if not (fields.get(name) or "").strip()]
    if missing:
        raise ValidationError("CSV row missing required columns: " + ", ".join(missing))

    effective_date = (date_override or fields[DATE]).strip()
    parse_date(effective_date)

    return InputRow(
        email=fields[EMAIL].strip(),
        building_name=fields[BUILDING].strip(),
        floor_name=fields[FLOOR].strip(),
        space_name=fields[SPACE].strip(),
        date=effective_date,
        space_type=(fields.get(SPACE_TYPE) or "").strip() or None,
        start_time=(fields.get(START_TIME) or "").strip() or None,
        end_time=(fields.get(END_TIME) or "").strip() or None,
    )


def read_csv(path: str | pathlib.Path, columns: ColumnMap = DEFAULT_COLUMNS) -> list[CsvRecord]:
    """Read every non-blank data row; numbering skips the header and blank lines."""
    records: list[CsvRecord] = []
    with pathlib.Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        for raw in reader:
            if not any((v or "").strip() for v in raw.values() if isinstance(v, str)):
                continue
            records.append(CsvRecord(row=len(records) + 1, fields=columns.extract(raw)))
    return records
