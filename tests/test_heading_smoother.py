"""
Tests for parknav.sensors.heading_smoother: circular exponential smoothing.
"""

import random

import pytest

from parknav.sensors.heading_smoother import HeadingSmoother, heading_from_magnetometer


def test_first_update_passes_through():
    s = HeadingSmoother(0.8)
    assert s.update(123.0) == pytest.approx(123.0)


def test_zero_factor_is_passthrough():
    s = HeadingSmoother(0.0)
    for raw in [10.0, 200.0, 359.0, 0.5, 181.0, 90.0]:
        assert s.update(raw) == pytest.approx(raw)


def test_smoothing_moves_fraction_of_delta():
    s = HeadingSmoother(0.8)
    s.update(0.0)
    assert s.update(50.0) == pytest.approx(10.0)


def test_wraparound_takes_shortest_arc():
    s = HeadingSmoother(0.5)
    s.update(350.0)
    # shortest path from 350 to 10 is +20, half of it lands on 0
    assert s.update(10.0) == pytest.approx(0.0, abs=1e-9)
    s = HeadingSmoother(0.5)
    s.update(10.0)
    assert s.update(350.0) == pytest.approx(0.0, abs=1e-9)


def test_output_always_in_range():
    s = HeadingSmoother(0.3)
    rng = random.Random(7)
    for _ in range(200):
        out = s.update(rng.uniform(-720.0, 720.0))
        assert 0.0 <= out < 360.0


def test_factor_near_one_barely_moves():
    s = HeadingSmoother(0.999)
    s.update(90.0)
    rng = random.Random(1)
    outputs = [s.update(90.0 + rng.uniform(-90.0, 90.0)) for _ in range(100)]
    # each step moves at most 0.1% of a <=180 degree delta
    assert max(outputs) - min(outputs) < 10.0
    assert all(abs(o - 90.0) < 10.0 for o in outputs)


def test_factor_one_freezes():
    s = HeadingSmoother(1.0)
    s.update(42.0)
    for raw in [0.0, 180.0, 300.0]:
        assert s.update(raw) == pytest.approx(42.0)


def test_factor_is_clamped():
    s = HeadingSmoother()
    s.set_smoothing_factor(1.7)
    assert s.smoothing_factor == 1.0
    s.set_smoothing_factor(-0.2)
    assert s.smoothing_factor == 0.0


def test_reset_forgets_history():
    s = HeadingSmoother(0.9)
    s.update(0.0)
    s.reset()
    assert s.last_heading is None
    assert s.update(200.0) == pytest.approx(200.0)


def test_heading_from_magnetometer():
    assert heading_from_magnetometer(1.0, 0.0) == pytest.approx(0.0)
    assert heading_from_magnetometer(0.0, 1.0) == pytest.approx(90.0)
    assert heading_from_magnetometer(0.0, -1.0) == pytest.approx(270.0)
