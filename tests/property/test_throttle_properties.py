"""
Property-Based Tests for location write throttling

A sample is written when nothing was written yet, or when it moved at
least min_distance_m or arrived at least min_interval_s after the last
written sample.
"""

import pytest
from hypothesis import given, strategies as st
from hypothesis.strategies import composite

from hitchsafe.models.location import LocationSample
from hitchsafe.services.location.location_tracker import ThrottlePolicy, calculate_distance


@composite
def location_sample(draw, timestamp=None):
    """Generate a sample in a small area so both throttle branches are exercised"""
    return LocationSample(
        latitude=draw(st.floats(min_value=40.0, max_value=40.001)),
        longitude=draw(st.floats(min_value=-74.001, max_value=-74.0)),
        timestamp=timestamp if timestamp is not None else draw(
            st.integers(min_value=1_000_000, max_value=1_020_000)
        )
    )


@composite
def throttle_policy(draw):
    return ThrottlePolicy(
        min_distance_m=draw(st.floats(min_value=1.0, max_value=200.0)),
        min_interval_s=draw(st.floats(min_value=0.5, max_value=30.0))
    )


@pytest.mark.property
class TestThrottleProperties:

    @given(policy=throttle_policy(), sample=location_sample())
    def test_first_sample_always_written(self, policy, sample):
        assert policy.should_accept(None, sample)

    @given(policy=throttle_policy(), last=location_sample(), sample=location_sample())
    def test_accepts_exactly_on_distance_or_time(self, policy, last, sample):
        moved_m = calculate_distance(last.latitude, last.longitude,
                                     sample.latitude, sample.longitude) * 1000
        elapsed_s = (sample.timestamp - last.timestamp) / 1000

        expected = moved_m >= policy.min_distance_m or elapsed_s >= policy.min_interval_s

        assert policy.should_accept(last, sample) == expected

    @given(policy=throttle_policy(), last=location_sample(timestamp=1_000_000))
    def test_same_place_same_time_rejected(self, policy, last):
        repeat = LocationSample(latitude=last.latitude, longitude=last.longitude, timestamp=last.timestamp)

        assert not policy.should_accept(last, repeat)
