"""
FastAPI application exposing what the poller stores.

Endpoints
---------
- GET /health                         -> Simple liveness check
- GET /devices                        -> All routers, ordered by name
- GET /devices/summary                -> UP / DOWN counts
- GET /devices/{id}/traffic           -> Traffic logs within the last N minutes
- GET /devices/{id}/traffic/latest    -> Latest traffic log with display values
"""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Iterator, List

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from noc_poller.converters import format_rate, optical_signal_level
from noc_poller.database import build_engine, create_tables, make_session_factory
from noc_poller.models import STATUS_DOWN, STATUS_UP, Device, TrafficLog
from noc_poller.schemas import (
    DeviceOut,
    DeviceSummaryOut,
    LatestTrafficOut,
    TrafficLogOut,
)

app = FastAPI(
    title="NOC SNMP Poller API",
    version="0.1.0",
)


# ---------------------------------------------------------------------------
# Dependency: one DB session per request
# ---------------------------------------------------------------------------


@lru_cache
def get_session_factory() -> sessionmaker:
    """Build the engine on first use; tables are created if missing."""
    engine = build_engine()
    create_tables(engine)
    return make_session_factory(engine)


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency that provides a SQLAlchemy session.

    The session is created at the start of the request and closed at the end.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def _get_device_or_404(db: Session, device_id: str) -> Device:
    device = db.get(Device, device_id)
    if device is None:
        raise HTTPException(status_code=404, detail="Router not found")
    return device


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
def health() -> dict:
    """Simple liveness endpoint used for health checks."""
    return {"status": "ok"}


@app.get("/devices", response_model=List[DeviceOut])
def list_devices(db: Session = Depends(get_db)):
    return db.query(Device).order_by(Device.name).all()


@app.get("/devices/summary", response_model=DeviceSummaryOut)
def device_summary(db: Session = Depends(get_db)):
    counts = dict(
        db.query(Device.status, func.count(Device.id)).group_by(Device.status).all()
    )
    total = sum(counts.values())
    up = counts.get(STATUS_UP, 0)
    down = counts.get(STATUS_DOWN, 0)
    return DeviceSummaryOut(
        total=total,
        up_count=up,
        down_count=down,
        unknown_count=total - up - down,
    )


@app.get("/devices/{device_id}/traffic", response_model=List[TrafficLogOut])
def get_traffic(
    device_id: str,
    minutes: int = Query(30, ge=1, le=24 * 60),
    db: Session = Depends(get_db),
):
    """
    Return the traffic logs of one router from the last `minutes`,
    oldest first, ready to be charted.
    """
    _get_device_or_404(db, device_id)
    since = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    return (
        db.query(TrafficLog)
        .filter(TrafficLog.router_id == device_id, TrafficLog.created_at >= since)
        .order_by(TrafficLog.created_at.asc(), TrafficLog.id.asc())
        .all()
    )


@app.get("/devices/{device_id}/traffic/latest", response_model=LatestTrafficOut)
def get_latest_traffic(device_id: str, db: Session = Depends(get_db)):
    _get_device_or_404(db, device_id)
    log = (
        db.query(TrafficLog)
        .filter(TrafficLog.router_id == device_id)
        .order_by(TrafficLog.created_at.desc(), TrafficLog.id.desc())
        .first()
    )
    if log is None:
        raise HTTPException(status_code=404, detail="No traffic logged yet")

    return LatestTrafficOut(
        id=log.id,
        router_id=log.router_id,
        rx_bps=log.rx_bps,
        tx_bps=log.tx_bps,
        sfp_rx_dbm=log.sfp_rx_dbm,
        created_at=log.created_at,
        rx_display=format_rate(log.rx_bps),
        tx_display=format_rate(log.tx_bps),
        signal_level=optical_signal_level(log.sfp_rx_dbm),
    )
