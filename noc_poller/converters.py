"""
Pure value conversions used by the poller.

- counter deltas -> bits per second (with 32-bit wraparound)
- vendor-scaled optical integers -> dBm
- bit rates -> human readable strings
"""

from typing import Optional, Union

Number = Union[int, float]

# Max value of an SNMP Counter32
COUNTER32_MAX = 4294967295

# Optical receive power thresholds used by the dashboard (dBm)
SIGNAL_GOOD_ABOVE = -15.0
SIGNAL_WARNING_FROM = -24.0


def bits_per_second_from_delta(
    previous_value: int,
    previous_timestamp: float,
    current_value: int,
    current_timestamp: float,
) -> Optional[int]:
    """
    Turn two readings of a cumulative byte counter into a bit rate.

    Timestamps are in seconds. Returns None when no time has elapsed
    (duplicate sample or clock going backwards).

    A negative delta is treated as exactly one Counter32 wrap; more than one
    wrap between samples cannot be detected.
    """
    elapsed = current_timestamp - previous_timestamp
    if elapsed <= 0:
        return None

    delta = current_value - previous_value
    if delta < 0:
        delta = (COUNTER32_MAX - previous_value) + current_value

    return round(delta * 8 / elapsed)


def dbm_from_raw_optical(
    raw: Optional[Number],
    divisor: Optional[float] = None,
) -> Optional[float]:
    """
    Convert a vendor optical power reading to dBm.

    Mikrotik style devices report scaled integers (e.g. -2300 for -23.00 dBm).
    When the device has an explicit `divisor` it is used as-is; otherwise the
    magnitude decides the scale:

    - |raw| > 1000        -> raw / 100
    - 100 < |raw| <= 1000 -> raw / 10
    - otherwise           -> already dBm
    """
    if raw is None:
        return None

    if divisor:
        return raw / divisor

    magnitude = abs(raw)
    if magnitude > 1000:
        return raw / 100
    if magnitude > 100:
        return raw / 10
    return float(raw)


def format_rate(bps: Number) -> str:
    """Render a bit rate with the largest fitting unit, e.g. "12.50 Mbps"."""
    if bps >= 1e9:
        return f"{bps / 1e9:.2f} Gbps"
    if bps >= 1e6:
        return f"{bps / 1e6:.2f} Mbps"
    if bps >= 1e3:
        return f"{bps / 1e3:.2f} Kbps"
    return f"{bps:.0f} bps"


def optical_signal_level(dbm: Optional[float]) -> str:
    """Classify receive power as good / warning / critical (or unknown)."""
    if dbm is None:
        return "unknown"
    if dbm > SIGNAL_GOOD_ABOVE:
        return "good"
    if dbm >= SIGNAL_WARNING_FROM:
        return "warning"
    return "critical"
