"""Tests for the per-device counter history."""

from noc_poller.rate_state import METRIC_RX, METRIC_TX, RateSample, RateStateStore


def test_first_sample_is_bootstrap():
    store = RateStateStore()
    assert store.record_and_differ("r1", METRIC_RX, 123456, 0.0) is None
    assert store.get("r1", METRIC_RX) == RateSample(value=123456, timestamp=0.0)


def test_second_sample_yields_rate():
    store = RateStateStore()
    store.record_and_differ("r1", METRIC_RX, 1000, 0.0)
    assert store.record_and_differ("r1", METRIC_RX, 2000, 10.0) == 800


def test_keys_are_independent():
    store = RateStateStore()
    store.record_and_differ("r1", METRIC_RX, 1000, 0.0)
    assert store.record_and_differ("r1", METRIC_TX, 5000, 10.0) is None
    assert store.record_and_differ("r2", METRIC_RX, 5000, 10.0) is None
    assert len(store) == 3


def test_sample_stored_even_when_elapsed_not_positive():
    store = RateStateStore()
    store.record_and_differ("r1", METRIC_RX, 1000, 5.0)
    assert store.record_and_differ("r1", METRIC_RX, 1500, 5.0) is None
    assert store.get("r1", METRIC_RX) == RateSample(value=1500, timestamp=5.0)
    # next delta is taken from the sample that failed to differ
    assert store.record_and_differ("r1", METRIC_RX, 2500, 6.0) == 8000


def test_wraparound_through_store():
    store = RateStateStore()
    store.record_and_differ("r1", METRIC_TX, 4294967290, 0.0)
    assert store.record_and_differ("r1", METRIC_TX, 5, 1.0) == 80


def test_fresh_instances_share_nothing():
    a = RateStateStore()
    b = RateStateStore()
    a.record_and_differ("r1", METRIC_RX, 1000, 0.0)
    assert b.record_and_differ("r1", METRIC_RX, 2000, 10.0) is None
