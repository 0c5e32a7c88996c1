"""
Trip Service Package

Provides the trip lifecycle coordinator.
"""

from .trip_coordinator import TripCoordinator, format_duration

__all__ = ['TripCoordinator', 'format_duration']
