from sqlalchemy import Column, Integer, String, TIMESTAMP
from carpark.database import Base

# Width of the license column
MAX_LICENSE_LENGTH = 20

class ParkingSession(Base):
    __tablename__ = "parking_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    license = Column(String(MAX_LICENSE_LENGTH), nullable=False, index=True)
    arrival = Column(TIMESTAMP, nullable=False)
    departure = Column(TIMESTAMP, nullable=True)

    @property
    def is_open(self) -> bool:
        return self.departure is None

    def __repr__(self):
        return f"<ParkingSession id={self.id} license={self.license!r} arrival={self.arrival} departure={self.departure}>"
