"""
Trip data models for HitchSafe

A trip always has a registered initiator with an explicit role. The other
party is a tagged variant: either another registered user, who occupies the
opposite role slot, or a non-app user recorded by name and photo.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from .emergency import EmergencyEvent, ParticipantRole
from .location import LocationSample, now_ms


class TripStatus(Enum):
    """Trip lifecycle status"""
    ACTIVE = "active"
    EMERGENCY = "emergency"
    COMPLETED = "completed"


# Forward-only status transitions; nothing leaves COMPLETED
STATUS_TRANSITIONS = {
    TripStatus.ACTIVE: {TripStatus.EMERGENCY, TripStatus.COMPLETED},
    TripStatus.EMERGENCY: {TripStatus.COMPLETED},
    TripStatus.COMPLETED: set(),
}


@dataclass
class RegisteredParty:
    """Snapshot of a registered user taken when the trip started"""
    uid: str
    name: str
    role: ParticipantRole
    qr_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'uid': self.uid, 'name': self.name, 'qrCode': self.qr_code}


@dataclass
class NonAppParty:
    """Counterpart without a HitchSafe account"""
    name: str
    phone_number: Optional[str] = None
    license_photo: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'phoneNumber': self.phone_number,
            'licensePhoto': self.license_photo
        }


OtherParty = Union[RegisteredParty, NonAppParty]


@dataclass
class Trip:
    """A tracked journey between two parties"""
    id: str
    initiator: RegisteredParty
    other_party: OtherParty
    start_location: LocationSample
    current_location: LocationSample
    status: TripStatus = TripStatus.ACTIVE
    is_emergency: bool = False
    emergency_data: Optional[EmergencyEvent] = None
    end_location: Optional[LocationSample] = None
    safe_arrival: bool = False
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    ended_at: Optional[int] = None

    def _slot(self, role: ParticipantRole) -> Optional[RegisteredParty]:
        for party in (self.initiator, self.other_party):
            if isinstance(party, RegisteredParty) and party.role is role:
                return party
        return None

    @property
    def driver(self) -> Optional[RegisteredParty]:
        return self._slot(ParticipantRole.DRIVER)

    @property
    def hitchhiker(self) -> Optional[RegisteredParty]:
        return self._slot(ParticipantRole.HITCHHIKER)

    @property
    def non_app_user(self) -> Optional[NonAppParty]:
        if isinstance(self.other_party, NonAppParty):
            return self.other_party
        return None

    @property
    def is_active(self) -> bool:
        return self.status is not TripStatus.COMPLETED

    def can_transition_to(self, status: TripStatus) -> bool:
        return status in STATUS_TRANSITIONS[self.status]

    def role_of(self, user_id: str) -> ParticipantRole:
        """Role of a user in this trip, by participant id only"""
        driver = self.driver
        if driver is not None and driver.uid == user_id:
            return ParticipantRole.DRIVER
        hitchhiker = self.hitchhiker
        if hitchhiker is not None and hitchhiker.uid == user_id:
            return ParticipantRole.HITCHHIKER
        return ParticipantRole.UNKNOWN

    def counterpart_of(self, user_id: str) -> Optional[OtherParty]:
        """The party on the other side of the trip from user_id"""
        role = self.role_of(user_id)
        if role is ParticipantRole.DRIVER:
            return self.hitchhiker or self.non_app_user
        if role is ParticipantRole.HITCHHIKER:
            return self.driver or self.non_app_user
        return self.non_app_user

    def to_dict(self) -> Dict[str, Any]:
        """Convert to document representation (id is the document key)"""
        driver = self.driver
        hitchhiker = self.hitchhiker
        non_app_user = self.non_app_user

        return {
            'initiatorId': self.initiator.uid,
            'driver': driver.to_dict() if driver else None,
            'hitchhiker': hitchhiker.to_dict() if hitchhiker else None,
            'nonAppUser': non_app_user.to_dict() if non_app_user else None,
            'startLocation': self.start_location.to_dict(),
            'currentLocation': self.current_location.to_dict(),
            'endLocation': self.end_location.to_dict() if self.end_location else None,
            'status': self.status.value,
            'isEmergency': self.is_emergency,
            'emergencyData': self.emergency_data.to_dict() if self.emergency_data else None,
            'safeArrival': self.safe_arrival,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'endedAt': self.ended_at
        }

    @classmethod
    def from_dict(cls, trip_id: str, data: Dict[str, Any]) -> 'Trip':
        """Create from document representation"""
        slots = {}
        for role in (ParticipantRole.DRIVER, ParticipantRole.HITCHHIKER):
            slot = data.get(role.value)
            if slot:
                slots[role] = RegisteredParty(
                    uid=slot['uid'],
                    name=slot.get('name', ''),
                    role=role,
                    qr_code=slot.get('qrCode')
                )

        initiator_id = data.get('initiatorId')
        initiator = next((p for p in slots.values() if p.uid == initiator_id), None)
        if initiator is None:
            raise ValueError(f"Trip {trip_id} has no initiator slot")

        other_party: Optional[OtherParty] = next(
            (p for p in slots.values() if p is not initiator), None
        )
        if other_party is None and data.get('nonAppUser'):
            non_app = data['nonAppUser']
            other_party = NonAppParty(
                name=non_app.get('name', ''),
                phone_number=non_app.get('phoneNumber'),
                license_photo=non_app.get('licensePhoto', '')
            )
        if other_party is None:
            raise ValueError(f"Trip {trip_id} has no other party")

        emergency_data = data.get('emergencyData')
        end_location = data.get('endLocation')

        return cls(
            id=trip_id,
            initiator=initiator,
            other_party=other_party,
            start_location=LocationSample.from_dict(data['startLocation']),
            current_location=LocationSample.from_dict(data['currentLocation']),
            status=TripStatus(data.get('status', 'active')),
            is_emergency=bool(data.get('isEmergency', False)),
            emergency_data=EmergencyEvent.from_dict(emergency_data) if emergency_data else None,
            end_location=LocationSample.from_dict(end_location) if end_location else None,
            safe_arrival=bool(data.get('safeArrival', False)),
            created_at=data.get('createdAt') or now_ms(),
            updated_at=data.get('updatedAt') or now_ms(),
            ended_at=data.get('endedAt')
        )


@dataclass
class TripStats:
    """Derived figures for display"""
    duration_ms: int
    duration_label: str
    distance_km: float
