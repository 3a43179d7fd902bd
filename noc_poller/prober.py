"""
Device prober: read the configured OIDs of one device and convert them.

A probe never writes to the record store. Its only side effect is updating
the RateStateStore with the counters it read.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from noc_poller.converters import dbm_from_raw_optical, format_rate
from noc_poller.rate_state import METRIC_RX, METRIC_TX, RateStateStore
from noc_poller.snmp_client import (
    DeviceUnreachableError,
    ReadTimeoutError,
    SessionFactory,
    SnmpError,
)
from noc_poller.store import DeviceTarget

logger = logging.getLogger(__name__)

OPTICAL = "sfp_rx"


@dataclass(frozen=True)
class ProbeResult:
    """Converted metrics of one device for one cycle; None means unavailable."""

    device_id: str
    rx_bps: Optional[int] = None
    tx_bps: Optional[int] = None
    sfp_rx_dbm: Optional[float] = None
    reachable: bool = True

    @property
    def has_metrics(self) -> bool:
        return not (self.rx_bps is None and self.tx_bps is None and self.sfp_rx_dbm is None)

    @classmethod
    def unreachable(cls, device_id: str) -> "ProbeResult":
        return cls(device_id=device_id, reachable=False)


class DeviceProber:
    """
    Probe devices over SNMP.

    `session_factory(address, community)` returns the session to read from;
    `clock()` returns seconds and must be monotonic for rate maths.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        rate_state: RateStateStore,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.rate_state = rate_state
        self.clock = clock

    async def probe(self, device: DeviceTarget) -> ProbeResult:
        """
        Read every configured metric of `device`.

        Each read fails independently. The device is unreachable when the
        session cannot be opened, or when every configured read timed out
        without any answer. A device that answers with an error for a metric
        is still reachable.
        """
        if not device.has_metrics:
            logger.debug("%s has no OIDs configured, nothing to poll", device.name)
            return ProbeResult(device_id=device.id)

        logger.info("Polling router %s (%s)", device.name, device.address)
        now = self.clock()

        reads = [
            (label, oid)
            for label, oid in (
                (METRIC_RX, device.oid_in),
                (METRIC_TX, device.oid_out),
                (OPTICAL, device.oid_optical),
            )
            if oid
        ]
        raw: Dict[str, Optional[int]] = {}
        answered = 0

        try:
            async with self.session_factory(device.address, device.community) as session:
                for label, oid in reads:
                    try:
                        raw[label] = await session.get(oid)
                        answered += 1
                    except DeviceUnreachableError:
                        raise
                    except ReadTimeoutError as exc:
                        logger.warning("%s %s OID %s timed out: %s", device.name, label.upper(), oid, exc)
                        raw[label] = None
                    except SnmpError as exc:
                        logger.warning("%s %s OID %s error: %s", device.name, label.upper(), oid, exc)
                        raw[label] = None
                        answered += 1
        except DeviceUnreachableError as exc:
            logger.warning("SNMP session error for %s: %s", device.name, exc)
            return ProbeResult.unreachable(device.id)

        if not answered:
            logger.warning("%s did not answer any SNMP request", device.name)
            return ProbeResult.unreachable(device.id)

        return ProbeResult(
            device_id=device.id,
            rx_bps=self._rate(device, METRIC_RX, raw.get(METRIC_RX), now),
            tx_bps=self._rate(device, METRIC_TX, raw.get(METRIC_TX), now),
            sfp_rx_dbm=self._dbm(device, raw.get(OPTICAL)),
            reachable=True,
        )

    def _rate(self, device: DeviceTarget, metric: str, counter: Optional[int], now: float) -> Optional[int]:
        if counter is None:
            return None

        bps = self.rate_state.record_and_differ(device.id, metric, counter, now)
        logger.debug(
            "%s %s counter %d -> %s",
            device.name,
            metric.upper(),
            counter,
            format_rate(bps) if bps is not None else "calculating...",
        )
        return bps

    def _dbm(self, device: DeviceTarget, raw: Optional[int]) -> Optional[float]:
        if raw is None:
            return None

        dbm = dbm_from_raw_optical(raw, device.optical_divisor)
        logger.debug("%s SFP RX %d -> %s dBm", device.name, raw, dbm)
        return dbm
