"""
Emergency event data model for HitchSafe
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .location import LocationSample


class ParticipantRole(Enum):
    """Role a registered party holds within a trip"""
    DRIVER = "driver"
    HITCHHIKER = "hitchhiker"
    UNKNOWN = "unknown"

    def opposite(self) -> 'ParticipantRole':
        """The counterpart role for a two-party trip"""
        if self is ParticipantRole.DRIVER:
            return ParticipantRole.HITCHHIKER
        if self is ParticipantRole.HITCHHIKER:
            return ParticipantRole.DRIVER
        return ParticipantRole.UNKNOWN


@dataclass
class EmergencyEvent:
    """
    Record of one emergency trigger on a trip.

    Only recording_ref changes after creation; it is attached once the
    emergency recording session closes.
    """
    trip_id: str
    user_id: str
    location: LocationSample
    timestamp: int
    message: str
    role: ParticipantRole = ParticipantRole.UNKNOWN
    recording_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the trip's emergencyData field"""
        return {
            'tripId': self.trip_id,
            'userId': self.user_id,
            'location': self.location.to_dict(),
            'timestamp': self.timestamp,
            'message': self.message,
            'type': self.role.value,
            'recordingRef': self.recording_ref
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmergencyEvent':
        """Create from the trip's emergencyData field"""
        try:
            role = ParticipantRole(data.get('type', 'unknown'))
        except ValueError:
            role = ParticipantRole.UNKNOWN

        return cls(
            trip_id=data['tripId'],
            user_id=data['userId'],
            location=LocationSample.from_dict(data['location']),
            timestamp=int(data['timestamp']),
            message=data.get('message', ''),
            role=role,
            recording_ref=data.get('recordingRef')
        )
