"""Read API over the budget and ledger, consumed by the charting dashboard."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

import ledger
from database import get_db
from errors import StorageError, ValidationError
from settings import API_HOST, API_PORT, LIMIT_POLICY, local_now, setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Piggy Bank Budget API", version="0.1.0")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"], allow_headers=["*"])


def get_now() -> datetime:
    return local_now()


@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request, exc: StorageError):
    logger.error("Storage failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"error": "Storage unavailable, try again later."})


class TransactionOut(BaseModel):
    date: str
    item: str
    amount: float
    category: str
    type: str


class TransactionsResponse(BaseModel):
    period: str
    data: List[TransactionOut]
    total: float


class Limits(BaseModel):
    daily: float
    base: float
    spentToday: float
    leftToday: float
    safetyBuffer: float
    isWarning: bool


class StatusResponse(BaseModel):
    active: bool
    name: Optional[str] = None
    principal: Optional[float] = None
    fixedSpent: Optional[float] = None
    varSpent: Optional[float] = None
    daysLeft: Optional[int] = None
    limits: Optional[Limits] = None


class DayStateOut(BaseModel):
    date: str
    spent: float
    limit: float
    piggy_bank: float
    days_remaining: int


class DailyResponse(BaseModel):
    active: bool
    history: List[DayStateOut] = []


@app.get("/api/transactions", response_model=TransactionsResponse)
def get_transactions(
    period: Optional[str] = Query(None, description="Month bucket, e.g. 2024-03"),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    period = ledger.parse_period(period) if period else ledger.period_key(now.date())
    rows = ledger.with_retry(db, lambda: ledger.list_transactions(db, period), "load transactions")
    data = [t.to_dict() for t in rows]
    total = sum(t["amount"] for t in data)
    return TransactionsResponse(period=period, data=data, total=total)


@app.get("/api/status", response_model=StatusResponse, response_model_exclude_none=True)
def get_status(db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    snapshot = ledger.load_snapshot(db, now=now, policy=LIMIT_POLICY)
    if snapshot is None:
        return StatusResponse(active=False)
    return StatusResponse(**snapshot.to_status())


@app.get("/api/daily", response_model=DailyResponse)
def get_daily(db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    snapshot = ledger.load_snapshot(db, now=now, policy=LIMIT_POLICY)
    if snapshot is None:
        return DailyResponse(active=False)
    return DailyResponse(active=True, history=snapshot.history_records())


@app.get("/api/periods", response_model=List[str])
def get_periods(db: Session = Depends(get_db)):
    return ledger.list_periods(db)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run("api_server:app", host=API_HOST, port=API_PORT, reload=True)
