"""
Record store used by the poller.

The poller only needs three operations: list devices, update a device's
reachability, and insert a traffic log. `DeviceStore` describes them;
`SqlDeviceStore` implements them on top of the SQLAlchemy models.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from noc_poller.models import STATUS_DOWN, STATUS_UP, Device, TrafficLog


class StoreError(Exception):
    """Raised when a read or write against the record store fails."""


@dataclass(frozen=True)
class DeviceTarget:
    """Per-cycle copy of a device row, with everything a probe needs."""

    id: str
    name: str
    address: str
    community: str
    oid_in: Optional[str] = None
    oid_out: Optional[str] = None
    oid_optical: Optional[str] = None
    optical_divisor: Optional[float] = None
    reachable: Optional[bool] = None

    @property
    def has_metrics(self) -> bool:
        return bool(self.oid_in or self.oid_out or self.oid_optical)


class DeviceStore(Protocol):
    def list_devices(self) -> List[DeviceTarget]: ...

    def set_reachability(self, device_id: str, reachable: bool) -> None: ...

    def insert_traffic_log(
        self,
        device_id: str,
        rx_bps: int,
        tx_bps: int,
        sfp_rx_dbm: Optional[float],
    ) -> None: ...


def _clean(value: Optional[str]) -> Optional[str]:
    """Treat blank strings from the inventory form as unset."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def device_target_from_row(row: Device, default_community: str = "public") -> DeviceTarget:
    if row.status == STATUS_UP:
        reachable = True
    elif row.status == STATUS_DOWN:
        reachable = False
    else:
        reachable = None

    return DeviceTarget(
        id=row.id,
        name=row.name,
        address=row.ip_address,
        community=_clean(row.community_string) or default_community,
        oid_in=_clean(row.oid_interface_in),
        oid_out=_clean(row.oid_interface_out),
        oid_optical=_clean(row.oid_sfp_rx),
        optical_divisor=row.optical_divisor,
        reachable=reachable,
    )


class SqlDeviceStore:
    """
    DeviceStore backed by SQLAlchemy.

    Each call opens its own session, so calls are safe from worker threads.
    Any SQLAlchemyError is rolled back and re-raised as StoreError.
    """

    def __init__(self, session_factory: sessionmaker, default_community: str = "public"):
        self.session_factory = session_factory
        self.default_community = default_community

    def list_devices(self) -> List[DeviceTarget]:
        try:
            with self.session_factory() as db:
                rows = db.execute(select(Device).order_by(Device.created_at, Device.id)).scalars().all()
                return [device_target_from_row(row, self.default_community) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to list devices: {exc}") from exc

    def set_reachability(self, device_id: str, reachable: bool) -> None:
        status = STATUS_UP if reachable else STATUS_DOWN
        try:
            with self.session_factory() as db:
                try:
                    db.execute(
                        update(Device).where(Device.id == device_id).values(status=status)
                    )
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to update status of {device_id}: {exc}") from exc

    def insert_traffic_log(
        self,
        device_id: str,
        rx_bps: int,
        tx_bps: int,
        sfp_rx_dbm: Optional[float],
    ) -> None:
        try:
            with self.session_factory() as db:
                try:
                    db.add(
                        TrafficLog(
                            router_id=device_id,
                            rx_bps=rx_bps,
                            tx_bps=tx_bps,
                            sfp_rx_dbm=sfp_rx_dbm,
                        )
                    )
                    db.commit()
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to save traffic log for {device_id}: {exc}") from exc
