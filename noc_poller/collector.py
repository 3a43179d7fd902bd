"""
Background poller process.

This module:
- fetches the router list from the record store
- probes each router over SNMP (real or stub)
- writes reachability and TrafficLog rows back to the store

Run it as:

    DATABASE_URL=sqlite:///./noc.db python -m noc_poller.collector

or, without a real router:

    USE_SNMP_STUB=1 DATABASE_URL=sqlite:///./noc.db python -m noc_poller.collector
"""

import asyncio
import logging
import signal
import sys
import time
from dataclasses import dataclass, field
from typing import List

from pydantic import ValidationError

from noc_poller.config import Settings, get_settings
from noc_poller.database import build_engine, create_tables, make_session_factory
from noc_poller.prober import DeviceProber, ProbeResult
from noc_poller.rate_state import RateStateStore
from noc_poller.scheduler import PollScheduler
from noc_poller.snmp_client import session_factory_from_settings
from noc_poller.store import DeviceStore, DeviceTarget, SqlDeviceStore, StoreError

logger = logging.getLogger(__name__)


@dataclass
class DeviceOutcome:
    """What happened to one device during a cycle."""

    device: DeviceTarget
    result: ProbeResult
    log_written: bool = False
    errors: List[str] = field(default_factory=list)


@dataclass
class CycleSummary:
    devices: List[DeviceOutcome] = field(default_factory=list)
    duration: float = 0.0

    @property
    def logs_written(self) -> int:
        return sum(1 for o in self.devices if o.log_written)

    @property
    def unreachable(self) -> int:
        return sum(1 for o in self.devices if not o.result.reachable)

    @property
    def store_errors(self) -> int:
        return sum(len(o.errors) for o in self.devices)


class PollCycle:
    """
    One pass over every device in the store.

    The cycle keeps no state of its own between runs; counter history lives
    in the prober's RateStateStore. A failure on one device never stops the
    others.
    """

    def __init__(self, store: DeviceStore, prober: DeviceProber, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.store = store
        self.prober = prober
        self.concurrency = concurrency

    async def run_cycle(self) -> CycleSummary:
        started = time.monotonic()
        summary = CycleSummary()
        logger.info("Poll cycle started")

        try:
            devices = await asyncio.to_thread(self.store.list_devices)
        except StoreError as exc:
            logger.error("Error fetching routers: %s", exc)
            devices = []

        if not devices:
            logger.warning("No routers found in store")
            summary.duration = time.monotonic() - started
            return summary

        logger.info("Found %d router(s) to poll", len(devices))

        if self.concurrency == 1:
            for device in devices:
                summary.devices.append(await self._process(device))
        else:
            gate = asyncio.Semaphore(self.concurrency)

            async def bounded(device: DeviceTarget) -> DeviceOutcome:
                async with gate:
                    return await self._process(device)

            # gather keeps list order in its results
            summary.devices = list(await asyncio.gather(*(bounded(d) for d in devices)))

        summary.duration = time.monotonic() - started
        logger.info(
            "Poll cycle completed in %.2fs: %d device(s), %d log(s), %d unreachable, %d store error(s)",
            summary.duration,
            len(summary.devices),
            summary.logs_written,
            summary.unreachable,
            summary.store_errors,
        )
        return summary

    async def _process(self, device: DeviceTarget) -> DeviceOutcome:
        try:
            result = await self.prober.probe(device)
        except Exception:
            logger.exception("Error polling %s", device.name)
            result = ProbeResult.unreachable(device.id)

        outcome = DeviceOutcome(device=device, result=result)

        try:
            await asyncio.to_thread(self.store.set_reachability, device.id, result.reachable)
        except StoreError as exc:
            logger.error("Error updating router status for %s: %s", device.name, exc)
            outcome.errors.append(str(exc))

        if not result.has_metrics:
            if result.reachable and device.has_metrics:
                logger.info("Skipping save for %s, waiting for delta calculation", device.name)
            return outcome

        try:
            await asyncio.to_thread(
                self.store.insert_traffic_log,
                device.id,
                result.rx_bps or 0,
                result.tx_bps or 0,
                result.sfp_rx_dbm,
            )
            outcome.log_written = True
            logger.info("Traffic log saved for %s", device.name)
        except StoreError as exc:
            logger.error("Error saving traffic log for %s: %s", device.name, exc)
            outcome.errors.append(str(exc))

        return outcome


async def serve(settings: Settings) -> None:
    """Wire the store, prober and scheduler together and poll until signalled."""
    engine = build_engine(settings)
    create_tables(engine)
    store = SqlDeviceStore(make_session_factory(engine), settings.snmp_default_community)
    prober = DeviceProber(session_factory_from_settings(settings), RateStateStore())
    cycle = PollCycle(store, prober, concurrency=settings.poll_concurrency)
    scheduler = PollScheduler(cycle.run_cycle, settings.poll_interval_ms)

    loop = asyncio.get_running_loop()

    def handle_signal() -> None:
        logger.info("Shutting down SNMP poller...")
        scheduler.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    try:
        await scheduler.run()
    finally:
        engine.dispose()


def main() -> int:
    """
    Load settings, then poll forever.

    Missing store settings are fatal: we exit with status 1 before the first
    cycle is scheduled.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        settings = get_settings()
    except ValidationError as exc:
        logger.critical("Invalid poller configuration:\n%s", exc)
        return 1

    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting NOC SNMP poller")
    logger.info("Poll interval: %.1f seconds", settings.poll_interval_ms / 1000)

    asyncio.run(serve(settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
