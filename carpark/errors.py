"""Failure kinds raised by the session store and the ledger."""

from __future__ import annotations


class LedgerError(Exception):
    """Base exception for every carpark failure."""

    kind = "LedgerError"


class InvalidInput(LedgerError):
    """Malformed or missing request data (empty plate, bad duration)."""

    kind = "InvalidInput"


class AlreadyParked(InvalidInput):
    """Entry refused because the plate already has an open session."""

    kind = "AlreadyParked"

    def __init__(self, license: str, record_id: int) -> None:
        self.license = license
        self.record_id = record_id
        super().__init__(f"Vehicle {license} already inside (session {record_id})")


class NotFound(LedgerError):
    """No session exists with the given id."""

    kind = "NotFound"

    def __init__(self, record_id: int) -> None:
        self.record_id = record_id
        super().__init__(f"No parking session with id {record_id}")


class AlreadyClosed(LedgerError):
    """Close attempted on a session whose departure is already recorded."""

    kind = "AlreadyClosed"

    def __init__(self, record_id: int) -> None:
        self.record_id = record_id
        super().__init__(f"Parking session {record_id} is already closed")


class InvalidDuration(LedgerError):
    """Departure precedes arrival."""

    kind = "InvalidDuration"


class InvalidConfiguration(LedgerError):
    """Billing configured with a rate that is not a positive finite number."""

    kind = "InvalidConfiguration"


class StoreUnavailable(LedgerError):
    """The backing database could not be reached or did not answer in time."""

    kind = "StoreUnavailable"
