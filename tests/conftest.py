from typing import Dict, List, Optional, Set, Tuple

import pytest
from sqlalchemy.pool import StaticPool

from noc_poller.config import Settings
from noc_poller.database import build_engine, create_tables, make_session_factory
from noc_poller.prober import DeviceProber
from noc_poller.rate_state import RateStateStore
from noc_poller.snmp_client import DeviceUnreachableError, ReadTimeoutError, ScalarSession
from noc_poller.store import DeviceTarget, SqlDeviceStore, StoreError

IN_OID = "1.3.6.1.2.1.2.2.1.10.1"
OUT_OID = "1.3.6.1.2.1.2.2.1.16.1"
SFP_OID = "1.3.6.1.4.1.14988.1.1.19.1.1.5.1"


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeSession(ScalarSession):
    def __init__(self, network: "FakeNetwork", address: str):
        self.network = network
        self.address = address

    async def __aenter__(self):
        if self.address in self.network.unreachable:
            raise DeviceUnreachableError(f"{self.address} unreachable")
        self.network.opened.append(self.address)
        return self

    async def get(self, oid: str) -> int:
        self.network.reads.append((self.address, oid))
        value = self.network.values.get((self.address, oid))
        if value is None:
            raise ReadTimeoutError("No SNMP response received before timeout")
        if isinstance(value, Exception):
            raise value
        return value


class FakeNetwork:
    """Scripted SNMP answers keyed by (address, oid)."""

    def __init__(self):
        self.values: Dict[Tuple[str, str], object] = {}
        self.unreachable: Set[str] = set()
        self.opened: List[str] = []
        self.reads: List[Tuple[str, str]] = []

    def set(self, address: str, oid: str, value) -> None:
        self.values[(address, oid)] = value

    def __call__(self, address: str, community: str) -> FakeSession:
        return FakeSession(self, address)


class FakeStore:
    """In-memory DeviceStore that records every write."""

    def __init__(self, devices: Optional[List[DeviceTarget]] = None):
        self.devices = list(devices or [])
        self.reachability: List[Tuple[str, bool]] = []
        self.logs: List[dict] = []
        self.fail_list = False
        self.fail_status_for: Set[str] = set()
        self.fail_log_for: Set[str] = set()

    def list_devices(self) -> List[DeviceTarget]:
        if self.fail_list:
            raise StoreError("connection refused")
        return list(self.devices)

    def set_reachability(self, device_id: str, reachable: bool) -> None:
        if device_id in self.fail_status_for:
            raise StoreError("update failed")
        self.reachability.append((device_id, reachable))

    def insert_traffic_log(self, device_id, rx_bps, tx_bps, sfp_rx_dbm) -> None:
        if device_id in self.fail_log_for:
            raise StoreError("insert failed")
        self.logs.append(
            {
                "router_id": device_id,
                "rx_bps": rx_bps,
                "tx_bps": tx_bps,
                "sfp_rx_dbm": sfp_rx_dbm,
            }
        )


def make_device(device_id: str = "r1", **kwargs) -> DeviceTarget:
    fields = {
        "id": device_id,
        "name": f"router-{device_id}",
        "address": f"{device_id}.example.net",
        "community": "public",
    }
    fields.update(kwargs)
    return DeviceTarget(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def rate_state():
    return RateStateStore()


@pytest.fixture
def prober(network, rate_state, clock):
    return DeviceProber(network, rate_state, clock=clock)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", _env_file=None)


@pytest.fixture
def engine(settings):
    engine = build_engine(
        settings,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def sql_store(session_factory):
    return SqlDeviceStore(session_factory)
