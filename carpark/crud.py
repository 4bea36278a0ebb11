from sqlalchemy import insert, literal, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from datetime import datetime
from carpark.models import ParkingSession

async def get_session_by_id(db: AsyncSession, record_id: int):
    result = await db.execute(
        select(ParkingSession).where(ParkingSession.id == record_id)
    )
    return result.scalars().first()

async def get_open_sessions_by_license(db: AsyncSession, license: str, limit: int):
    result = await db.execute(
        select(ParkingSession)
        .where(
            ParkingSession.license == license,
            ParkingSession.departure.is_(None)
        )
        .order_by(ParkingSession.arrival.desc(), ParkingSession.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())

async def get_open_sessions(db: AsyncSession):
    result = await db.execute(
        select(ParkingSession)
        .where(ParkingSession.departure.is_(None))
        .order_by(ParkingSession.id)
    )
    return list(result.scalars().all())

async def create_parking_session(db: AsyncSession, license: str, arrival: datetime):
    new_session = ParkingSession(license=license, arrival=arrival, departure=None)
    db.add(new_session)
    await db.flush()
    await db.refresh(new_session)
    return new_session

async def create_parking_session_if_absent(db: AsyncSession, license: str, arrival: datetime):
    """Insert an open session unless the plate already has one.

    The existence check and the insert are a single statement. Returns the
    new session, or None when an open session for the plate exists.
    """
    open_for_plate = (
        select(ParkingSession.id)
        .where(
            ParkingSession.license == license,
            ParkingSession.departure.is_(None)
        )
        .correlate(None)
        .exists()
    )
    result = await db.execute(
        insert(ParkingSession.__table__).from_select(
            ["license", "arrival"],
            select(
                literal(license, ParkingSession.license.type),
                literal(arrival, ParkingSession.arrival.type)
            ).where(~open_for_plate)
        )
    )
    if result.rowcount != 1:
        return None

    sessions = await get_open_sessions_by_license(db, license, 1)
    return sessions[0]

async def mark_session_exited(db: AsyncSession, record_id: int, departure: datetime) -> bool:
    """Set the departure of an open session in one statement.

    Only matches a session that is still open and arrived no later than
    ``departure``; returns whether a row was updated.
    """
    result = await db.execute(
        update(ParkingSession)
        .where(
            ParkingSession.id == record_id,
            ParkingSession.departure.is_(None),
            ParkingSession.arrival <= departure
        )
        .values(departure=departure)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
