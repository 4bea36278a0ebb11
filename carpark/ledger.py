"""Parking ledger: opens and closes sessions and bills them."""

from __future__ import annotations

import logging
import math
from datetime import datetime

from carpark.config import validate_rate
from carpark.errors import AlreadyParked, InvalidDuration, InvalidInput
from carpark.models import ParkingSession
from carpark.store import SessionStore, to_utc_naive, utc_now

_logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


def compute_charge(duration_seconds: float, rate_per_hour: float) -> float:
    """Charge for ``duration_seconds`` of parking at ``rate_per_hour``.

    The result is not rounded; currency policy belongs to the caller.
    """
    rate = validate_rate(rate_per_hour)
    if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, (int, float)):
        raise InvalidInput(f"Duration must be a number of seconds, got {duration_seconds!r}")
    if not math.isfinite(duration_seconds) or duration_seconds < 0:
        raise InvalidInput(f"Duration must be a non-negative number of seconds, got {duration_seconds!r}")
    return (duration_seconds / SECONDS_PER_HOUR) * rate


class ParkingLedger:
    """Domain operations over a :class:`SessionStore`.

    Holds no session state between calls; the store owns it.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        rate_per_hour: float = 7.50,
        reject_duplicate_entry: bool = False,
    ) -> None:
        self._store = store
        self._rate = validate_rate(rate_per_hour)
        self._reject_duplicate_entry = reject_duplicate_entry

    @property
    def rate_per_hour(self) -> float:
        return self._rate

    async def register_inbound(self, license: str, arrival: datetime | None = None) -> int:
        """Open a session for ``license`` and return its id.

        The id is the only handle accepted by :meth:`register_outbound`.
        """
        if not isinstance(license, str) or not license.strip():
            raise InvalidInput("License plate must be a non-empty string")
        license = license.strip()
        arrival = utc_now() if arrival is None else to_utc_naive(arrival)

        try:
            record_id = await self._store.create_session(
                license, arrival, exclusive=self._reject_duplicate_entry
            )
        except AlreadyParked as exc:
            _logger.warning("Entry refused for %s: session %s still open", license, exc.record_id)
            raise
        _logger.info("Vehicle %s entered at %s (session %s)", license, arrival.isoformat(), record_id)
        return record_id

    async def register_outbound(self, record_id: int, departure: datetime | None = None) -> int:
        """Close session ``record_id`` and return the whole seconds parked."""
        if isinstance(record_id, bool) or not isinstance(record_id, int):
            raise InvalidInput(f"Session id must be an integer, got {record_id!r}")
        departure = utc_now() if departure is None else to_utc_naive(departure)

        session = await self._store.close_session(record_id, departure)
        duration = math.floor((session.departure - session.arrival).total_seconds())
        if duration < 0:
            raise InvalidDuration(f"Session {record_id} has negative duration {duration}s")

        _logger.info("Vehicle %s left after %ss (session %s)", session.license, duration, record_id)
        return duration

    def charge(self, duration_seconds: float) -> float:
        return compute_charge(duration_seconds, self._rate)

    async def is_parked(self, license: str) -> bool:
        return bool(await self.find_open(license, 1))

    async def find_open(self, license: str, limit: int = 1) -> list[ParkingSession]:
        if not isinstance(license, str) or not license.strip():
            raise InvalidInput("License plate must be a non-empty string")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidInput(f"Limit must be a positive integer, got {limit!r}")
        return await self._store.find_open_by_license(license.strip(), limit)

    async def current_occupancy(self) -> list[ParkingSession]:
        return await self._store.list_open()

    async def get_session(self, record_id: int) -> ParkingSession:
        return await self._store.get_session(record_id)
