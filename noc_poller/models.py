"""
SQLAlchemy ORM models.

Two tables back the poller:

- Device (routers): monitored routers and the OIDs to poll on each
- TrafficLog (traffic_logs): one row per device per poll cycle with rates
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from noc_poller.database import Base

STATUS_UP = "UP"
STATUS_DOWN = "DOWN"
STATUS_UNKNOWN = "UNKNOWN"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Device(Base):
    """
    A monitored router.

    Inventory management creates and edits these rows; the poller only reads
    them and updates `status` after each probe.
    """

    __tablename__ = "routers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(128), nullable=False)
    ip_address = Column(String(64), nullable=False)
    community_string = Column(String(128), nullable=True)

    # Metric sources; any of them may be unset
    oid_interface_in = Column(String(256), nullable=True)
    oid_interface_out = Column(String(256), nullable=True)
    oid_sfp_rx = Column(String(256), nullable=True)

    # Per-device optical scaling (raw / divisor); NULL means use the heuristic
    optical_divisor = Column(Float, nullable=True)

    status = Column(String(16), nullable=False, default=STATUS_UNKNOWN)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    traffic_logs = relationship(
        "TrafficLog",
        back_populates="device",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TrafficLog(Base):
    """
    Rates computed for one device during one poll cycle.

    rx_bps / tx_bps are bits per second (0 when unknown), sfp_rx_dbm is the
    optical receive power in dBm or NULL.
    """

    __tablename__ = "traffic_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)

    router_id = Column(
        String(36),
        ForeignKey("routers.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    rx_bps = Column(BigInteger, nullable=False, default=0)
    tx_bps = Column(BigInteger, nullable=False, default=0)
    sfp_rx_dbm = Column(Float, nullable=True)

    # Assigned by the store when the row is inserted
    created_at = Column(DateTime(timezone=True), index=True, default=_utcnow, nullable=False)

    device = relationship("Device", back_populates="traffic_logs")
