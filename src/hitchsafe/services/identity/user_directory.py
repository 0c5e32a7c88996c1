"""
User Directory

Reads and writes user profiles in the users collection, along with the
emergency contacts stored as a subcollection under each user.
"""

import logging
from typing import Any, Dict, List, Optional

from hitchsafe.core.errors import AuthError
from hitchsafe.core.interfaces import DocumentStore
from hitchsafe.models.emergency import ParticipantRole
from hitchsafe.models.location import now_ms
from hitchsafe.models.qr import QRPayload
from hitchsafe.models.user import EmergencyContact, User, UserType


USERS_COLLECTION = 'users'
CONTACTS_SUBCOLLECTION = 'emergency_contacts'

# Profile fields a user may change after sign-up
EDITABLE_FIELDS = {'firstName', 'lastName', 'phoneNumber', 'userType', 'profilePicture'}


class UserDirectory:
    """User profile and emergency contact access"""

    def __init__(self, store: DocumentStore):
        self.logger = logging.getLogger(__name__)
        self.store = store

    async def create_user(self, user: User) -> User:
        await self.store.set_document(USERS_COLLECTION, user.uid, user.to_dict())
        self.logger.info(f"Created user profile {user.uid}")
        return user

    async def get_user(self, uid: str, include_contacts: bool = False) -> User:
        """
        Load a user profile

        Raises:
            AuthError: With code auth/user-not-found if there is no profile
        """
        data = await self.store.get_document(USERS_COLLECTION, uid)
        if data is None:
            raise AuthError('auth/user-not-found', f"No user profile for {uid}")

        user = User.from_dict(data)
        if include_contacts:
            user.emergency_contacts = await self.get_emergency_contacts(uid)
        return user

    async def update_profile(self, uid: str, updates: Dict[str, Any]) -> None:
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update profile fields: {', '.join(sorted(unknown))}")

        fields = dict(updates)
        if isinstance(fields.get('userType'), UserType):
            fields['userType'] = fields['userType'].value
        elif 'userType' in fields:
            fields['userType'] = UserType(fields['userType']).value
        fields['updatedAt'] = now_ms()

        await self.store.update_fields(USERS_COLLECTION, uid, fields)

    async def set_current_trip(self, uid: str, trip_id: Optional[str]) -> None:
        """Point the user at their active trip, or clear it with None"""
        await self.store.update_fields(USERS_COLLECTION, uid, {
            'currentTripId': trip_id,
            'updatedAt': now_ms()
        })

    async def add_emergency_contact(self, uid: str, contact: EmergencyContact) -> EmergencyContact:
        """
        Append an emergency contact to a user

        Contacts are kept in the order they were added and are never
        deduplicated.

        Raises:
            ValueError: If the contact has no name or phone number
            AuthError: If the user does not exist
        """
        if not contact.name or not contact.name.strip():
            raise ValueError("Emergency contact requires a name")
        if not contact.phone_number or not contact.phone_number.strip():
            raise ValueError("Emergency contact requires a phone number")

        if await self.store.get_document(USERS_COLLECTION, uid) is None:
            raise AuthError('auth/user-not-found', f"No user profile for {uid}")

        contact_id = await self.store.add_to_subcollection(
            USERS_COLLECTION, uid, CONTACTS_SUBCOLLECTION, contact.to_dict()
        )
        contact.id = contact_id
        self.logger.info(f"Added emergency contact {contact_id} for user {uid}")
        return contact

    async def get_emergency_contacts(self, uid: str) -> List[EmergencyContact]:
        documents = await self.store.list_subcollection(USERS_COLLECTION, uid, CONTACTS_SUBCOLLECTION)
        return [EmergencyContact.from_dict(doc) for doc in documents]

    async def build_qr_payload(self, uid: str,
                               role: Optional[ParticipantRole] = None) -> QRPayload:
        """
        Identity payload for the user's QR code

        Users registered as both driver and hitchhiker advertise the role
        they are travelling in, defaulting to hitchhiker.
        """
        user = await self.get_user(uid)

        user_type = user.user_type
        if user_type is UserType.BOTH:
            user_type = UserType.DRIVER if role is ParticipantRole.DRIVER else UserType.HITCHHIKER

        return QRPayload(
            user_id=user.uid,
            name=user.display_name,
            user_type=user_type,
            timestamp=now_ms()
        )
