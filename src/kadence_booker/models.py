"""Result records produced by the bulk-booking pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .entities import first_field, get_entity_id
from .timewindow import TimeWindow


@dataclass(frozen=True)
class BookingResult:
    """Outcome of a successful row; same shape for created and dry-run rows."""

    status: str  # "created" or "dry-run"
    user: str
    building: str
    floor: str
    space: str
    start_utc: str
    end_utc: str
    timezone: str
    date: str
    booking_id: str | None = None

    @classmethod
    def from_entities(
        cls,
        *,
        status: str,
        email: str,
        user: dict[str, Any],
        building: dict[str, Any],
        floor: dict[str, Any],
        space: dict[str, Any],
        window: TimeWindow,
        booking: dict[str, Any] | None = None,
    ) -> "BookingResult":
        return cls(
            status=status,
            user=str(first_field(user, ("email", "primaryEmail")) or email),
            building=str(building.get("name") or ""),
            floor=str(floor.get("name") or ""),
            space=str(first_field(space, ("name", "displayName")) or ""),
            start_utc=window.start_utc,
            end_utc=window.end_utc,
            timezone=window.timezone,
            date=window.date,
            booking_id=get_entity_id(booking),
        )

    def describe(self) -> str:
        label = "Created" if self.status == "created" else "Dry-run"
        line = f"{label}: {self.user} -> {self.building} / {self.floor} / {self.space} [{self.date} {self.timezone}]"
        if self.booking_id:
            line += f" id={self.booking_id}"
        return line


@dataclass(frozen=True)
class RowOutcome:
    row: int
    fields: dict[str, str] = field(default_factory=dict)
    result: BookingResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
