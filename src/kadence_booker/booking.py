from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable, Mapping, Protocol

from .errors import SubmissionFailed


logger = logging.getLogger(__name__)


class ApiWriter(Protocol):
    def post(self, path: str, body: Mapping[str, Any]) -> Any: ...


@dataclass(frozen=True)
class BookingRequest:
    user_id: str
    space_id: str
    start_utc: str
    end_utc: str


@dataclass(frozen=True)
class PayloadStrategy:
    name: str
    build: Callable[[BookingRequest], dict[str, Any]]


def _flat_ids(req: BookingRequest) -> dict[str, Any]:
    return {
        "userId": req.user_id,
        "spaceId": req.space_id,
        "startDateTime": req.start_utc,
        "endDateTime": req.end_utc,
    }


def _relation_refs(req: BookingRequest) -> dict[str, Any]:
    return {
        "user": f"/users/{req.user_id}",
        "space": f"/spaces/{req.space_id}",
        "startDateTime": req.start_utc,
        "endDateTime": req.end_utc,
    }


DEFAULT_PAYLOAD_STRATEGIES: tuple[PayloadStrategy, ...] = (
    PayloadStrategy("flat-ids", _flat_ids),
    PayloadStrategy("relation-refs", _relation_refs),
)


@dataclass
class BookingSubmitter:
    """Create a booking, retrying across the payload shapes the API has accepted."""

    client: ApiWriter
    strategies: tuple[PayloadStrategy, ...] = DEFAULT_PAYLOAD_STRATEGIES
    path: str = "/bookings"

    def submit(self, user_id: str, space_id: str, start_utc: str, end_utc: str) -> dict[str, Any]:
        req = BookingRequest(user_id=user_id, space_id=space_id, start_utc=start_utc, end_utc=end_utc)
        errors: list[dict[str, Any]] = []
        last_error: Exception | None = None

        for strategy in self.strategies:
            logger.info("Creating booking attempt (shape=%s, user=%s, space=%s)", strategy.name, user_id, space_id)
            try:
                created = self.client.post(self.path, strategy.build(req))
            except Exception as e:
                last_error = e
                errors.append({"shape": strategy.name, "error": str(e)[:1500]})
                logger.warning("Booking attempt %s failed: %s", strategy.name, str(e)[:800])
                continue
            return created if isinstance(created, dict) else {}

        # TODO: surface every attempt's error in the message once the row report can hold more than one line.
        message = str(last_error) if last_error is not None else "No booking payload shapes configured"
        raise SubmissionFailed(message, errors=errors) from last_error
