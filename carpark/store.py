"""Durable storage of parking sessions.

Every operation runs in its own transaction, bounded by a timeout, on a
connection pool shared for the lifetime of the store.  Database failures
never leak out as driver exceptions: they surface as
:class:`~carpark.errors.StoreUnavailable`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from carpark import crud
from carpark.database import writer_engine
from carpark.errors import AlreadyClosed, AlreadyParked, InvalidDuration, InvalidInput, NotFound, StoreUnavailable
from carpark.models import MAX_LICENSE_LENGTH, ParkingSession

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def to_utc_naive(value: datetime) -> datetime:
    """Normalise a timestamp to naive UTC, the form stored in the database.

    Naive values are assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionStore:
    """Create, close and query :class:`ParkingSession` rows.

    Parameters
    ----------
    engine : AsyncEngine
        Engine owning the connection pool.  The store never disposes it.
    timeout : float
        Seconds a single operation may take before it is abandoned,
        rolled back and reported as ``StoreUnavailable``.
    """

    def __init__(self, engine: AsyncEngine, *, timeout: float = 5.0) -> None:
        self._engine = engine
        self._reader = async_sessionmaker(engine, expire_on_commit=False)
        self._writer = async_sessionmaker(writer_engine(engine), expire_on_commit=False)
        self._timeout = timeout

    async def _run(
        self,
        name: str,
        operation: Callable[[AsyncSession], Awaitable[_T]],
        *,
        write: bool = False,
    ) -> _T:
        sessionmaker = self._writer if write else self._reader

        async def _in_transaction() -> _T:
            async with sessionmaker.begin() as db:
                return await operation(db)

        try:
            return await asyncio.wait_for(_in_transaction(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            _logger.error("Store operation %s timed out after %.1fs", name, self._timeout)
            raise StoreUnavailable(f"{name} timed out after {self._timeout}s") from exc
        except (DBAPIError, OSError) as exc:
            _logger.error("Store operation %s failed: %s", name, exc)
            raise StoreUnavailable(f"{name} failed: database unavailable") from exc

    async def create_session(self, license: str, arrival: datetime, *, exclusive: bool = False) -> int:
        """Insert a new open session and return its id.

        Never merges with an existing record for the same plate.  With
        ``exclusive`` the insert only happens when the plate has no open
        session, checked in the same statement; otherwise
        :class:`AlreadyParked` is raised.
        """
        if not isinstance(license, str) or not license.strip():
            raise InvalidInput("License plate must be a non-empty string")
        if len(license) > MAX_LICENSE_LENGTH:
            raise InvalidInput(f"License plate longer than {MAX_LICENSE_LENGTH} characters")
        arrival = to_utc_naive(arrival)

        async def _create(db: AsyncSession) -> int:
            if not exclusive:
                new_session = await crud.create_parking_session(db, license, arrival)
                return new_session.id

            new_session = await crud.create_parking_session_if_absent(db, license, arrival)
            if new_session is None:
                existing = await crud.get_open_sessions_by_license(db, license, 1)
                raise AlreadyParked(license, existing[0].id)
            return new_session.id

        return await self._run("create_session", _create, write=True)

    async def close_session(self, record_id: int, departure: datetime) -> ParkingSession:
        """Record the departure of an open session.

        The departure is written by a single conditional update, so of
        several concurrent closes on one id exactly one succeeds.

        Raises
        ------
        NotFound
            No session has this id.
        AlreadyClosed
            The session already has a departure; it is left untouched.
        InvalidDuration
            ``departure`` is earlier than the session's arrival; nothing
            is written.
        """
        departure = to_utc_naive(departure)

        async def _close(db: AsyncSession) -> ParkingSession:
            if await crud.mark_session_exited(db, record_id, departure):
                return await crud.get_session_by_id(db, record_id)

            session = await crud.get_session_by_id(db, record_id)
            if session is None:
                raise NotFound(record_id)
            if not session.is_open:
                raise AlreadyClosed(record_id)
            raise InvalidDuration(
                f"Departure {departure.isoformat()} precedes arrival "
                f"{session.arrival.isoformat()} for session {record_id}"
            )

        return await self._run("close_session", _close, write=True)

    async def get_session(self, record_id: int) -> ParkingSession:
        async def _get(db: AsyncSession) -> ParkingSession:
            session = await crud.get_session_by_id(db, record_id)
            if session is None:
                raise NotFound(record_id)
            return session

        return await self._run("get_session", _get)

    async def find_open_by_license(self, license: str, limit: int) -> list[ParkingSession]:
        """Open sessions for a plate, most recent arrival first."""

        async def _find(db: AsyncSession) -> list[ParkingSession]:
            return await crud.get_open_sessions_by_license(db, license, limit)

        return await self._run("find_open_by_license", _find)

    async def list_open(self) -> list[ParkingSession]:
        """All open sessions, ordered by id."""
        return await self._run("list_open", crud.get_open_sessions)
