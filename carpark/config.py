import math
import os

from carpark.errors import InvalidConfiguration


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


# Environment variables
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./carpark.db")
SQL_ECHO = _env_bool("SQL_ECHO")
STORE_TIMEOUT = float(os.getenv("STORE_TIMEOUT", "5.0"))
PARKING_RATE = float(os.getenv("PARKING_RATE", "7.50"))
REJECT_DUPLICATE_ENTRY = _env_bool("REJECT_DUPLICATE_ENTRY")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))


def validate_rate(rate_per_hour) -> float:
    """Return the hourly rate as a float, or raise if it cannot bill anything."""
    try:
        rate = float(rate_per_hour)
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"Parking rate must be a number, got {rate_per_hour!r}") from None
    if not math.isfinite(rate) or rate <= 0:
        raise InvalidConfiguration(f"Parking rate must be positive and finite, got {rate_per_hour!r}")
    return rate
