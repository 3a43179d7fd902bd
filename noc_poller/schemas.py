"""
Pydantic models ("schemas") for API responses.

We keep these separate from the ORM models so the API layer
does not expose SQLAlchemy internals.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DeviceOut(BaseModel):
    """
    A monitored router as shown on the dashboard.

    The community string is deliberately left out.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    ip_address: str
    oid_interface_in: Optional[str] = None
    oid_interface_out: Optional[str] = None
    oid_sfp_rx: Optional[str] = None
    optical_divisor: Optional[float] = None
    status: str
    updated_at: datetime


class DeviceSummaryOut(BaseModel):
    total: int
    up_count: int
    down_count: int
    unknown_count: int


class TrafficLogOut(BaseModel):
    """Full view of a TrafficLog row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    router_id: str
    rx_bps: int
    tx_bps: int
    sfp_rx_dbm: Optional[float] = None
    created_at: datetime


class LatestTrafficOut(TrafficLogOut):
    """
    Latest TrafficLog of a router plus display values.

    - rx_display / tx_display: rates rendered with a unit, e.g. "12.50 Mbps"
    - signal_level: good / warning / critical / unknown for sfp_rx_dbm
    """

    rx_display: str
    tx_display: str
    signal_level: str
