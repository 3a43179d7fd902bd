"""
In-memory counter history used to turn cumulative counters into rates.

State lives only for the lifetime of the process: after a restart the first
reading of every counter is a bootstrap sample and yields no rate. Entries
are never dropped while the process runs, so a device that leaves the
inventory and comes back continues from its last sample.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Hashable, Optional, Tuple

from noc_poller.converters import bits_per_second_from_delta

METRIC_RX = "rx"
METRIC_TX = "tx"


@dataclass(frozen=True)
class RateSample:
    """Last observed counter value and when it was read (seconds)."""

    value: int
    timestamp: float


class RateStateStore:
    """
    Per-(device, metric) memory of the last counter sample.

    One instance is shared by the prober across cycles. All access goes
    through a lock so overlapping probes of the same device cannot interleave
    the read and write of a key.
    """

    def __init__(self) -> None:
        self._samples: Dict[Tuple[Hashable, str], RateSample] = {}
        self._lock = threading.Lock()

    def record_and_differ(
        self,
        device_id: Hashable,
        metric: str,
        value: int,
        timestamp: float,
    ) -> Optional[int]:
        """
        Store (value, timestamp) for the key and return the bit rate since the
        previous sample, or None on the first sample for the key.
        """
        key = (device_id, metric)
        with self._lock:
            previous = self._samples.get(key)
            self._samples[key] = RateSample(value=value, timestamp=timestamp)

        if previous is None:
            return None

        return bits_per_second_from_delta(
            previous.value, previous.timestamp, value, timestamp
        )

    def get(self, device_id: Hashable, metric: str) -> Optional[RateSample]:
        with self._lock:
            return self._samples.get((device_id, metric))

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
