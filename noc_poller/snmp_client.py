"""
SNMP client abstraction.

We support two modes:

1. Real SNMP v2c GETs using the pysnmp asyncio API.
2. Stub mode: generate realistic-looking counters in-memory.

Both are used the same way:

    async with open_session(address, community) as session:
        value = await session.get(oid)

`get()` raises SnmpError when a single read fails, and ReadTimeoutError when
the device did not answer at all. Opening the session raises
DeviceUnreachableError when the device cannot be addressed.
"""

from __future__ import annotations

import logging
import random
from typing import Any, AsyncContextManager, Callable, Dict, Tuple

from pyasn1.type import univ

from noc_poller.config import Settings
from noc_poller.converters import COUNTER32_MAX

logger = logging.getLogger(__name__)

# (address, community) -> session usable as an async context manager
SessionFactory = Callable[[str, str], AsyncContextManager["ScalarSession"]]


class SnmpError(Exception):
    """Raised when SNMP retrieval of a single value fails."""


class DeviceUnreachableError(SnmpError):
    """Raised when no SNMP session can be established with a device."""


class ReadTimeoutError(SnmpError):
    """Raised when a GET got no response before the timeout and retries ran out."""


def decode_scalar(value: Any) -> int:
    """
    Decode a GET response value into an integer.

    Integer-like values (Counter32, Gauge32, Integer32, plain int) are taken as
    they are. Octet strings are read as a big-endian unsigned integer of any
    width, so a 4-byte and an 8-byte blob decode the same way.

    noSuchObject / noSuchInstance / endOfMibView are ASN.1 NULLs and raise.
    """
    if isinstance(value, univ.Null):
        raise SnmpError(f"no value at OID ({value.__class__.__name__})")

    if hasattr(value, "asOctets"):
        value = value.asOctets()

    if isinstance(value, (bytes, bytearray)):
        if not value:
            raise SnmpError("empty octet string")
        return int.from_bytes(value, byteorder="big", signed=False)

    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise SnmpError(f"non-numeric value {value!r}") from exc


class ScalarSession:
    """Interface shared by the real and stub sessions."""

    async def get(self, oid: str) -> int:
        raise NotImplementedError

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


# ---------------------------------------------------------------------------
# Real SNMP implementation
# ---------------------------------------------------------------------------


class SnmpSession(ScalarSession):
    """
    One SNMPv2c session against one device, using the pysnmp asyncio API.

    The transport target is resolved when the session is entered; every
    `get()` is an independent request with its own timeout and retries.
    pysnmp is imported when a session is opened, so stub mode and the rest
    of the poller do not load the network stack.
    """

    def __init__(
        self,
        host: str,
        community: str,
        port: int = 161,
        timeout: float = 5.0,
        retries: int = 1,
    ):
        self.host = host
        self.community = community
        self.port = port
        self.timeout = timeout
        self.retries = retries
        self._engine = None
        self._target = None

    async def __aenter__(self) -> "SnmpSession":
        from pysnmp.error import PySnmpError
        from pysnmp.hlapi.v3arch.asyncio import SnmpEngine, UdpTransportTarget

        try:
            self._target = await UdpTransportTarget.create(
                (self.host, self.port),
                timeout=self.timeout,
                retries=self.retries,
            )
        except (PySnmpError, OSError) as exc:
            raise DeviceUnreachableError(
                f"cannot open SNMP transport to {self.host}:{self.port}: {exc}"
            ) from exc
        self._engine = SnmpEngine()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._engine is not None:
            try:
                self._engine.close_dispatcher()
            except Exception as close_exc:
                logger.debug("Error closing SNMP dispatcher for %s: %s", self.host, close_exc)
            self._engine = None
        self._target = None

    async def get(self, oid: str) -> int:
        """Perform an SNMPv2c GET for a single OID and return its integer value."""
        if self._engine is None or self._target is None:
            raise SnmpError("session is not open")

        from pysnmp.error import PySnmpError
        from pysnmp.hlapi.v3arch.asyncio import (
            CommunityData,
            ContextData,
            ObjectIdentity,
            ObjectType,
            get_cmd,
        )
        from pysnmp.proto import errind

        try:
            errorIndication, errorStatus, errorIndex, varBinds = await get_cmd(
                self._engine,
                CommunityData(self.community, mpModel=1),  # SNMP v2c
                self._target,
                ContextData(),
                ObjectType(ObjectIdentity(oid)),
            )
        except PySnmpError as exc:
            raise SnmpError(str(exc)) from exc

        if isinstance(errorIndication, errind.RequestTimedOut):
            raise ReadTimeoutError(str(errorIndication))
        if errorIndication:
            raise SnmpError(str(errorIndication))
        if errorStatus:
            msg = f"{errorStatus.prettyPrint()} at {errorIndex and varBinds[int(errorIndex) - 1][0] or '?'}"
            raise SnmpError(msg)

        for _, value in varBinds:
            return decode_scalar(value)

        raise SnmpError("No varBinds returned")


# ---------------------------------------------------------------------------
# Stub implementation: fake counters for demo purposes
# ---------------------------------------------------------------------------

# Per-(address, oid) in-memory counters for stub mode
_stub_state: Dict[Tuple[str, str], int] = {}

# OIDs containing this marker answer like an SFP receive power sensor
STUB_OPTICAL_MARKER = "1.3.6.1.4.1.14988"


class StubSnmpSession(ScalarSession):
    """
    Generate fake readings so the poller runs without a real router.

    Counter OIDs grow by a random amount on each read and wrap like a
    Counter32; Mikrotik OIDs return a scaled optical power integer.
    """

    def __init__(self, host: str, community: str = "public"):
        self.host = host
        self.community = community

    async def get(self, oid: str) -> int:
        if STUB_OPTICAL_MARKER in oid:
            # e.g. -1850 -> -18.50 dBm
            return random.randint(-2600, -1200)

        key = (self.host, oid)
        if key not in _stub_state:
            _stub_state[key] = random.randint(1_000_000, 10_000_000)

        # Simulate traffic increments
        value = _stub_state[key] + random.randint(100_000, 5_000_000)
        _stub_state[key] = value % (COUNTER32_MAX + 1)
        return _stub_state[key]


# ---------------------------------------------------------------------------
# Public API used by the prober
# ---------------------------------------------------------------------------


def session_factory_from_settings(settings: Settings) -> SessionFactory:
    """
    Build the callable the prober uses to open a session per device.

    - USE_SNMP_STUB=1: every device answers from the in-memory stub.
    - otherwise: real SNMP with the configured port, timeout and retries.
    """
    if settings.use_snmp_stub:
        logger.warning("USE_SNMP_STUB is set, serving fake SNMP data")

        def open_stub(address: str, community: str) -> StubSnmpSession:
            return StubSnmpSession(address, community)

        return open_stub

    def open_snmp(address: str, community: str) -> SnmpSession:
        return SnmpSession(
            host=address,
            community=community,
            port=settings.snmp_port,
            timeout=settings.snmp_timeout_seconds,
            retries=settings.snmp_retries,
        )

    return open_snmp
