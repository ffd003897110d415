from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Callable, Sequence

from .booking import BookingSubmitter
from .failure_log import FailureLog
from .models import BookingResult, RowOutcome
from .resolver import ApiReader, EntityResolver, resolved_id
from .rows import CsvRecord, validate_row
from .timewindow import compute_time_window, ensure_building_timezone


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOptions:
    dry_run: bool = False
    date_override: str | None = None


@dataclass
class RowPipeline:
    """Validate -> resolve user/building/floor/space -> window -> submit (or dry-run)."""

    client: ApiReader
    resolver: EntityResolver
    submitter: BookingSubmitter
    options: PipelineOptions = field(default_factory=PipelineOptions)

    def process(self, fields: dict[str, str]) -> BookingResult:
        row = validate_row(fields, date_override=self.options.date_override)

        user = self.resolver.resolve_user(row.email)
        building = self.resolver.resolve_building(row.building_name)
        floor = self.resolver.resolve_floor(resolved_id(building, "Building"), row.floor_name)
        space = self.resolver.resolve_space(resolved_id(floor, "Floor"), row.space_name, row.space_type)

        user_id = resolved_id(user, "User")
        space_id = resolved_id(space, "Space")

        tz_name = ensure_building_timezone(self.client, building)
        window = compute_time_window(tz_name, row.date, row.start_time, row.end_time)

        entities = dict(email=row.email, user=user, building=building, floor=floor, space=space, window=window)
        if self.options.dry_run:
            return BookingResult.from_entities(status="dry-run", **entities)

        booking = self.submitter.submit(user_id, space_id, window.start_utc, window.end_utc)
        return BookingResult.from_entities(status="created", booking=booking, **entities)


def process_record(pipeline: RowPipeline, record: CsvRecord, failure_log: FailureLog | None = None) -> RowOutcome:
    try:
        result = pipeline.process(record.fields)
    except Exception as e:
        logger.debug("Row %s failed", record.row, exc_info=True)
        outcome = RowOutcome(row=record.row, fields=record.fields, error=str(e) or type(e).__name__)
    else:
        return RowOutcome(row=record.row, fields=record.fields, result=result)

    if failure_log is not None and not pipeline.options.dry_run:
        try:
            failure_log.append(
                outcome.row,
                outcome.fields,
                outcome.error or "",
                date_override=pipeline.options.date_override,
            )
        except Exception as e:
            logger.error("Could not write row %s to failure log %s: %s", outcome.row, failure_log.path, e)
    return outcome


def run_rows(
    records: Sequence[CsvRecord],
    pipeline: RowPipeline,
    *,
    concurrency: int = 1,
    failure_log: FailureLog | None = None,
    on_outcome: Callable[[RowOutcome], None] | None = None,
) -> list[RowOutcome]:
    """Process every record with a fixed pool of worker threads.

    Workers take the next record from a shared cursor and run it to completion
    before taking another. Outcomes are collected in completion order.
    """
    outcomes: list[RowOutcome] = []
    lock = threading.Lock()
    cursor = 0

    def _next() -> CsvRecord | None:
        nonlocal cursor
        with lock:
            if cursor >= len(records):
                return None
            record = records[cursor]
            cursor += 1
            return record

    def _worker() -> None:
        while True:
            record = _next()
            if record is None:
                return
            outcome = process_record(pipeline, record, failure_log)
            with lock:
                outcomes.append(outcome)
            if on_outcome is not None:
                try:
                    on_outcome(outcome)
                except Exception:
                    logger.exception("Outcome callback failed for row %s", outcome.row)

    size = max(1, int(concurrency or 1))
    workers = [threading.Thread(target=_worker, name=f"booker-{i + 1}", daemon=True) for i in range(size)]
    for w in workers:
        w.start()
    for w in workers:
        w.join()
    return outcomes


def summarize(outcomes: Sequence[RowOutcome]) -> tuple[int, int]:
    succeeded = sum(1 for o in outcomes if o.ok)
    return succeeded, len(outcomes) - succeeded
