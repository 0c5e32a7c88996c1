"""
Location Tracking Service Package

Provides throttled trip location tracking over the device position stream.
"""

from .location_tracker import (
    LocationTracker, LocationSubscription, ThrottlePolicy,
    calculate_distance, EARTH_RADIUS_KM
)

__all__ = [
    'LocationTracker', 'LocationSubscription', 'ThrottlePolicy',
    'calculate_distance', 'EARTH_RADIUS_KM'
]
