from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from carpark.models import MAX_LICENSE_LENGTH

class InboundRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    license: str = Field(min_length=1, max_length=MAX_LICENSE_LENGTH)
    arrival: Optional[datetime] = None

class OutboundRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    record_id: int = Field(alias="recordID")
    departure: Optional[datetime] = None

class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    license: str
    arrival: datetime
    departure: Optional[datetime] = None

class Envelope(BaseModel):
    message: str = "OK"
    data: Any = None

class ErrorEnvelope(BaseModel):
    message: str
    detail: str
