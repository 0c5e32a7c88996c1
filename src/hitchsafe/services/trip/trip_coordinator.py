"""
Trip Coordinator

Owns the trip lifecycle: creating a trip between two parties, keeping the
initiator's currentTripId in step, starting and stopping location tracking,
and finalizing the trip exactly once.
"""

import asyncio
import dataclasses
import logging
from typing import Dict, Optional, Union

from hitchsafe.core.errors import (
    InvalidQRPayload, LocationUnavailable, TripConflictError, TripNotFoundError
)
from hitchsafe.core.interfaces import DocumentStore
from hitchsafe.core.trip_store import TRIPS_COLLECTION, load_trip
from hitchsafe.models.emergency import ParticipantRole
from hitchsafe.models.location import LocationSample, now_ms
from hitchsafe.models.qr import parse_qr_payload
from hitchsafe.models.trip import (
    NonAppParty, OtherParty, RegisteredParty, Trip, TripStats, TripStatus
)
from hitchsafe.services.identity.user_directory import UserDirectory
from hitchsafe.services.location.location_tracker import LocationTracker, calculate_distance


def format_duration(duration_ms: int) -> str:
    """Render a duration as "{h}h {m}m", or "{m}m" under an hour"""
    total_minutes = max(0, int(duration_ms)) // 60000
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _coerce_role(role: Union[ParticipantRole, str]) -> ParticipantRole:
    try:
        role = ParticipantRole(role) if not isinstance(role, ParticipantRole) else role
    except ValueError:
        raise ValueError(f"Unknown trip role: {role!r}")
    if role is ParticipantRole.UNKNOWN:
        raise ValueError("Trip role must be driver or hitchhiker")
    return role


class TripCoordinator:
    """Creates, reads and ends trips"""

    def __init__(self, store: DocumentStore, users: UserDirectory,
                 tracker: LocationTracker, emergency=None):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.users = users
        self.tracker = tracker
        # EmergencyCoordinator, when wired; an open recording is closed with its trip
        self.emergency = emergency
        self._end_locks: Dict[str, asyncio.Lock] = {}

    async def create_trip(self, initiator_id: str, other_party: OtherParty,
                          start_location: Optional[LocationSample] = None, *,
                          role: Union[ParticipantRole, str]) -> str:
        """
        Start a trip and begin tracking it

        Args:
            initiator_id: Registered user starting the trip
            other_party: The counterpart, registered or not
            start_location: Where the trip starts; the device position if omitted
            role: The initiator's role; a registered counterpart takes the other one

        Returns:
            The new trip id

        Raises:
            TripConflictError: If the initiator already has an unfinished trip
            LocationUnavailable: If no start location is given and none can be read
        """
        role = _coerce_role(role)
        initiator = await self.users.get_user(initiator_id)

        if initiator.current_trip_id:
            try:
                existing = await load_trip(self.store, initiator.current_trip_id)
            except TripNotFoundError:
                self.logger.warning(
                    f"User {initiator_id} points at missing trip {initiator.current_trip_id}"
                )
            else:
                if existing.is_active:
                    raise TripConflictError(
                        f"User {initiator_id} already has an active trip {existing.id}"
                    )

        if isinstance(other_party, RegisteredParty):
            if other_party.uid == initiator_id:
                raise ValueError("A trip needs two different participants")
            other_party = dataclasses.replace(other_party, role=role.opposite())
        elif not other_party.name or not other_party.name.strip():
            raise ValueError("Non-app participant requires a name")

        if start_location is None:
            start_location = await self.tracker.get_current_location()

        trip = Trip(
            id='',
            initiator=RegisteredParty(uid=initiator.uid, name=initiator.display_name, role=role),
            other_party=other_party,
            start_location=start_location,
            current_location=start_location
        )
        trip.id = await self.store.add_document(TRIPS_COLLECTION, trip.to_dict())

        await self.users.set_current_trip(initiator_id, trip.id)
        await self.tracker.start_tracking(trip.id)

        self.logger.info(f"Started trip {trip.id} for {role.value} {initiator_id}")
        return trip.id

    async def start_trip_from_qr(self, initiator_id: str, raw_payload: Union[str, bytes],
                                 start_location: Optional[LocationSample] = None, *,
                                 role: Union[ParticipantRole, str]) -> str:
        """Start a trip with the registered user whose QR code was scanned"""
        payload = parse_qr_payload(raw_payload)
        if payload.user_id == initiator_id:
            raise InvalidQRPayload("Scanned your own QR code")

        if isinstance(raw_payload, bytes):
            raw_payload = raw_payload.decode('utf-8')

        role = _coerce_role(role)
        other_party = RegisteredParty(
            uid=payload.user_id,
            name=payload.name,
            role=role.opposite(),
            qr_code=raw_payload
        )
        return await self.create_trip(initiator_id, other_party, start_location, role=role)

    async def start_trip_with_non_app_user(self, initiator_id: str, name: str,
                                           phone_number: Optional[str] = None,
                                           license_photo: str = "",
                                           start_location: Optional[LocationSample] = None, *,
                                           role: Union[ParticipantRole, str]) -> str:
        """Start a trip with someone who does not use the app"""
        other_party = NonAppParty(name=name, phone_number=phone_number, license_photo=license_photo)
        return await self.create_trip(initiator_id, other_party, start_location, role=role)

    async def end_trip(self, trip_id: str, end_location: Optional[LocationSample] = None,
                       user_id: Optional[str] = None, safe_arrival: bool = True) -> Trip:
        """
        Finalize a trip

        Ending a trip that is already completed changes nothing.

        Args:
            trip_id: Trip to end
            end_location: Where the trip ended; the device position, or the
                trip's last known position, if omitted
            user_id: User whose currentTripId is cleared (defaults to the initiator)
            safe_arrival: Whether the trip ended with a safe arrival

        Returns:
            The trip as finalized
        """
        lock = self._end_locks.setdefault(trip_id, asyncio.Lock())
        try:
            async with lock:
                trip = await load_trip(self.store, trip_id)
                if not trip.can_transition_to(TripStatus.COMPLETED):
                    self.logger.info(f"Trip {trip_id} already completed")
                    return trip

                if self.tracker.current_trip_id == trip_id:
                    await self.tracker.stop_tracking()

                if self.emergency is not None and self.emergency.recording_trip_id == trip_id:
                    await self.emergency.stop_recording()

                if end_location is None:
                    try:
                        end_location = await self.tracker.get_current_location()
                    except LocationUnavailable as e:
                        self.logger.warning(f"Ending trip {trip_id} at last known location: {e}")
                        end_location = trip.current_location

                ended_at = now_ms()
                await self.store.update_fields(TRIPS_COLLECTION, trip_id, {
                    'status': TripStatus.COMPLETED.value,
                    'endedAt': ended_at,
                    'endLocation': end_location.to_dict(),
                    'safeArrival': safe_arrival,
                    'updatedAt': ended_at
                })
                trip.status = TripStatus.COMPLETED
                trip.ended_at = ended_at
                trip.end_location = end_location
                trip.safe_arrival = safe_arrival
                trip.updated_at = ended_at

                owner_id = user_id or trip.initiator.uid
                owner = await self.users.get_user(owner_id)
                if owner.current_trip_id == trip_id:
                    await self.users.set_current_trip(owner_id, None)

                if self.emergency is not None:
                    self.emergency.release_trip(trip_id)
        finally:
            if not lock.locked() and self._end_locks.get(trip_id) is lock:
                del self._end_locks[trip_id]

        self.logger.info(f"Ended trip {trip_id}")
        return trip

    def resolve_role(self, trip: Trip, user_id: str) -> ParticipantRole:
        return trip.role_of(user_id)

    def resolve_other_party(self, trip: Trip, user_id: str) -> Optional[OtherParty]:
        return trip.counterpart_of(user_id)

    async def get_trip(self, trip_id: str) -> Trip:
        return await load_trip(self.store, trip_id)

    async def get_active_trip(self, user_id: str) -> Optional[Trip]:
        """The user's unfinished trip, if any"""
        user = await self.users.get_user(user_id)
        if not user.current_trip_id:
            return None

        try:
            trip = await load_trip(self.store, user.current_trip_id)
        except TripNotFoundError:
            return None
        return trip if trip.is_active else None

    def get_trip_stats(self, trip: Trip, now: Optional[int] = None) -> TripStats:
        """Duration so far (or total, once ended) and distance covered"""
        end_time = trip.ended_at or (now if now is not None else now_ms())
        duration_ms = max(0, end_time - trip.created_at)

        last = trip.end_location or trip.current_location
        distance_km = calculate_distance(
            trip.start_location.latitude, trip.start_location.longitude,
            last.latitude, last.longitude
        )

        return TripStats(
            duration_ms=duration_ms,
            duration_label=format_duration(duration_ms),
            distance_km=distance_km
        )
