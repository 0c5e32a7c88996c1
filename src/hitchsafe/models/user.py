"""
User and emergency contact data models for HitchSafe
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .location import now_ms


class UserType(Enum):
    """How a user takes part in trips"""
    HITCHHIKER = "hitchhiker"
    DRIVER = "driver"
    BOTH = "both"


@dataclass
class EmergencyContact:
    """A person to alert when the owning user triggers an emergency"""
    name: str
    phone_number: str
    email: Optional[str] = None
    relationship: str = ""
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to document representation (id is the document key)"""
        return {
            'name': self.name,
            'phoneNumber': self.phone_number,
            'email': self.email,
            'relationship': self.relationship
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmergencyContact':
        """Create from document representation"""
        return cls(
            id=data.get('id'),
            name=data.get('name', ''),
            phone_number=data.get('phoneNumber', ''),
            email=data.get('email') or None,
            relationship=data.get('relationship', '')
        )


@dataclass
class User:
    """Registered HitchSafe user profile"""
    uid: str
    email: str
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    user_type: UserType = UserType.HITCHHIKER
    profile_picture: Optional[str] = None
    is_active: bool = True
    current_trip_id: Optional[str] = None
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    emergency_contacts: List[EmergencyContact] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Full name, falling back to the email address"""
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    def to_dict(self) -> Dict[str, Any]:
        """Convert to document representation (contacts live in a subcollection)"""
        return {
            'uid': self.uid,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'phoneNumber': self.phone_number,
            'userType': self.user_type.value,
            'profilePicture': self.profile_picture,
            'isActive': self.is_active,
            'currentTripId': self.current_trip_id,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        """Create from document representation"""
        try:
            user_type = UserType(data.get('userType', 'hitchhiker'))
        except ValueError:
            user_type = UserType.HITCHHIKER

        return cls(
            uid=data['uid'],
            email=data.get('email', ''),
            first_name=data.get('firstName', ''),
            last_name=data.get('lastName', ''),
            phone_number=data.get('phoneNumber', ''),
            user_type=user_type,
            profile_picture=data.get('profilePicture'),
            is_active=data.get('isActive', True),
            current_trip_id=data.get('currentTripId'),
            created_at=data.get('createdAt') or now_ms(),
            updated_at=data.get('updatedAt') or now_ms()
        )
