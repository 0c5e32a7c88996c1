"""
HitchSafe - Trip Tracking and Emergency SOS Core

Coordinates trip lifecycle, live location tracking, and emergency alert
fan-out for hitchhikers and drivers sharing a ride.
"""

__version__ = "1.0.0"
__author__ = "HitchSafe Development Team"
