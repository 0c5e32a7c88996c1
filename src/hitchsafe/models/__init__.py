"""
Data models for HitchSafe

Contains the data classes shared by all services.
"""

from .location import LocationSample, now_ms
from .user import User, UserType, EmergencyContact
from .emergency import EmergencyEvent, ParticipantRole
from .trip import (
    Trip, TripStatus, TripStats, RegisteredParty, NonAppParty, OtherParty
)
from .qr import QRPayload, parse_qr_payload

__all__ = [
    'LocationSample', 'now_ms',
    'User', 'UserType', 'EmergencyContact',
    'EmergencyEvent', 'ParticipantRole',
    'Trip', 'TripStatus', 'TripStats', 'RegisteredParty', 'NonAppParty', 'OtherParty',
    'QRPayload', 'parse_qr_payload'
]
