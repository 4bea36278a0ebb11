import uvicorn
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)
from carpark import config
from carpark.database import build_engine, init_db
from carpark.errors import (
    AlreadyClosed,
    AlreadyParked,
    InvalidConfiguration,
    InvalidDuration,
    InvalidInput,
    LedgerError,
    NotFound,
    StoreUnavailable,
)
from carpark.ledger import ParkingLedger
from carpark.schemas import Envelope, ErrorEnvelope, InboundRequest, OutboundRequest, SessionOut
from carpark.store import SessionStore

logging.basicConfig(level=logging.INFO)

STATUS_BY_ERROR = [
    (AlreadyParked, HTTP_409_CONFLICT),
    (InvalidInput, HTTP_400_BAD_REQUEST),
    (NotFound, HTTP_404_NOT_FOUND),
    (AlreadyClosed, HTTP_409_CONFLICT),
    (InvalidDuration, HTTP_400_BAD_REQUEST),
    (InvalidConfiguration, HTTP_500_INTERNAL_SERVER_ERROR),
    (StoreUnavailable, HTTP_503_SERVICE_UNAVAILABLE),
]

@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = build_engine(config.DATABASE_URL, echo=config.SQL_ECHO)
    await init_db(engine)
    store = SessionStore(engine, timeout=config.STORE_TIMEOUT)
    app.state.ledger = ParkingLedger(
        store,
        rate_per_hour=config.PARKING_RATE,
        reject_duplicate_entry=config.REJECT_DUPLICATE_ENTRY,
    )
    logging.info(f"Ledger ready on {engine.url.render_as_string(hide_password=True)} at {app.state.ledger.rate_per_hour}/h")
    yield
    await engine.dispose()

app = FastAPI(
    title="Carpark Ledger",
    version="1.0.1",
    lifespan=lifespan
)

def get_ledger(request: Request) -> ParkingLedger:
    return request.app.state.ledger

def ok(data=None) -> dict:
    return Envelope(data=data).model_dump(mode="json")

def status_for(exc: LedgerError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return HTTP_500_INTERNAL_SERVER_ERROR

@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = status_for(exc)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logging.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc}")
    else:
        logging.warning(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(message=exc.kind, detail=str(exc)).model_dump()
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    logging.warning(f"{request.method} {request.url.path} rejected: InvalidInput: {problems}")
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=ErrorEnvelope(message=InvalidInput.kind, detail=problems).model_dump()
    )

@app.post("/api/inbound", response_model=Envelope)
async def inbound(entry: InboundRequest, ledger: ParkingLedger = Depends(get_ledger)):
    record_id = await ledger.register_inbound(entry.license, entry.arrival)
    return ok({"recordID": record_id})

@app.post("/api/outbound", response_model=Envelope)
async def outbound(exit_request: OutboundRequest, ledger: ParkingLedger = Depends(get_ledger)):
    time_parked = await ledger.register_outbound(exit_request.record_id, exit_request.departure)
    return ok({"timeParked": time_parked, "fee": ledger.charge(time_parked)})

@app.get("/api/fee", response_model=Envelope)
async def fee(time_parked: float = Query(alias="timeParked"), ledger: ParkingLedger = Depends(get_ledger)):
    return ok({"fee": ledger.charge(time_parked)})

@app.get("/api/parked", response_model=Envelope)
async def parked(license: str = Query(min_length=1), ledger: ParkingLedger = Depends(get_ledger)):
    return ok({"parked": await ledger.is_parked(license)})

@app.get("/api/occupancy", response_model=Envelope)
async def occupancy(ledger: ParkingLedger = Depends(get_ledger)):
    sessions = await ledger.current_occupancy()
    return ok([SessionOut.model_validate(session) for session in sessions])

@app.get("/api/sessions/{record_id}", response_model=Envelope)
async def session_detail(record_id: int, ledger: ParkingLedger = Depends(get_ledger)):
    return ok(SessionOut.model_validate(await ledger.get_session(record_id)))

if __name__ == "__main__":
    uvicorn.run("carpark.main:app", host=config.HOST, port=config.PORT)
