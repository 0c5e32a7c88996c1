"""
Emergency Coordinator

Owns the emergency state machine for trips:
- Idempotent, per-trip serialized emergency triggers
- Location snapshot with fallback to the trip's last known position
- Emergency flag persistence
- Audio recording with auto-stop
- Contact alert fan-out, local confirmation and push notification

Every side effect of a trigger runs on its own; a failing step is logged
and the remaining steps still run.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from hitchsafe.core.errors import (
    AlertDispatchFailure, LocationUnavailable, PersistenceError, RecordingError,
    TripConflictError
)
from hitchsafe.core.interfaces import DocumentStore, NotificationPresenter
from hitchsafe.core.logging import LogContext, get_structured_logger
from hitchsafe.core.trip_store import TRIPS_COLLECTION, load_trip
from hitchsafe.models.emergency import EmergencyEvent
from hitchsafe.models.location import LocationSample, now_ms
from hitchsafe.models.trip import Trip, TripStatus
from hitchsafe.models.user import EmergencyContact
from hitchsafe.services.alerts.contact_alert_dispatcher import AlertReport, ContactAlertDispatcher
from hitchsafe.services.alerts.push_client import PushNotificationClient
from hitchsafe.services.identity.user_directory import UserDirectory
from hitchsafe.services.location.location_tracker import LocationTracker
from .recording import RecordingSession, RecordingSessionManager


NOTIFICATION_TITLE = '🚨 Emergency Alert Sent'
NOTIFICATION_MESSAGE = 'Emergency contacts have been notified. Stay safe!'


class EmergencyCoordinator:
    """
    Coordinates everything that happens when a user triggers an emergency
    """

    def __init__(self, store: DocumentStore, users: UserDirectory,
                 tracker: LocationTracker, dispatcher: ContactAlertDispatcher,
                 recordings: RecordingSessionManager, presenter: NotificationPresenter,
                 push: Optional[PushNotificationClient] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(__name__)
        self.events_logger = get_structured_logger('services.emergency')
        self.store = store
        self.users = users
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.recordings = recordings
        self.presenter = presenter
        self.push = push
        self.config = config or {}

        self.default_message = self.config.get('default_message', 'Emergency Alert!')
        self.emergency_number = str(self.config.get('emergency_number', '911'))

        self._locks: Dict[str, asyncio.Lock] = {}
        self._events: Dict[str, EmergencyEvent] = {}
        self._unpersisted: Set[str] = set()
        self._reports: Dict[str, AlertReport] = {}

        self.recordings.on_stopped = self._on_recording_stopped

    async def trigger(self, trip_id: str, user_id: str,
                      message: Optional[str] = None) -> EmergencyEvent:
        """
        Raise an emergency on a trip

        A trip that already has an emergency returns the existing event
        without alerting anyone again. Concurrent triggers on one trip run
        one after the other.

        Args:
            trip_id: Trip to flag
            user_id: Triggering user, whose contacts are alerted
            message: Human message for the alerts

        Returns:
            The trip's EmergencyEvent

        Raises:
            TripNotFoundError: If the trip does not exist
            TripConflictError: If the trip is already completed
            AuthError: If the user has no profile
            PersistenceError: If the emergency flag could not be written;
                alerts have still gone out and a later trigger retries the
                write only
        """
        lock = self._locks.setdefault(trip_id, asyncio.Lock())
        async with lock:
            event = self._events.get(trip_id)
            if event is not None:
                if trip_id in self._unpersisted:
                    await self._persist_event(event)
                return event

            trip = await load_trip(self.store, trip_id)
            if trip.is_emergency:
                if trip.emergency_data is None:
                    raise TripConflictError(f"Trip {trip_id} is flagged without emergency data")
                self._events[trip_id] = trip.emergency_data
                return trip.emergency_data
            if not trip.can_transition_to(TripStatus.EMERGENCY):
                raise TripConflictError(f"Trip {trip_id} is {trip.status.value}")

            await self.users.get_user(user_id)

            event = EmergencyEvent(
                trip_id=trip_id,
                user_id=user_id,
                location=await self._snapshot_location(trip),
                timestamp=now_ms(),
                message=message or self.default_message,
                role=trip.role_of(user_id)
            )
            self._events[trip_id] = event

            with LogContext(self.events_logger, trip_id=trip_id, user_id=user_id) as log:
                log.critical(
                    "emergency_triggered",
                    role=event.role.value,
                    latitude=event.location.latitude,
                    longitude=event.location.longitude
                )

            persistence_error = None
            try:
                await self._persist_event(event)
            except PersistenceError as e:
                self.logger.error(f"Error saving emergency for trip {trip_id}: {e}")
                self._unpersisted.add(trip_id)
                persistence_error = e

            await self._start_recording(trip_id)
            contacts = await self._load_contacts(user_id)
            await self._fan_out(event, contacts)
            self._notify()
            await self._push(event, contacts)

            if persistence_error is not None:
                raise persistence_error
            return event

    async def _snapshot_location(self, trip: Trip) -> LocationSample:
        try:
            return await self.tracker.get_current_location()
        except LocationUnavailable as e:
            self.logger.warning(
                f"Using last known location for trip {trip.id}, device fix unavailable: {e}"
            )
            return trip.current_location

    async def _persist_event(self, event: EmergencyEvent):
        await self.store.update_fields(TRIPS_COLLECTION, event.trip_id, {
            'isEmergency': True,
            'status': TripStatus.EMERGENCY.value,
            'emergencyData': event.to_dict(),
            'emergencyTriggeredAt': event.timestamp,
            'updatedAt': now_ms()
        })
        self._unpersisted.discard(event.trip_id)

    async def _start_recording(self, trip_id: str):
        try:
            session = await self.recordings.start(trip_id)
        except RecordingError as e:
            self.logger.error(f"Error starting emergency recording for trip {trip_id}: {e}")
            return
        except OSError as e:
            self.logger.error(f"Cannot prepare recording file for trip {trip_id}: {e}")
            return
        except Exception as e:
            self.logger.error(f"Recorder failed for trip {trip_id}: {e}")
            return

        if session is None:
            self.logger.info(f"Emergency recording already running, not starting another for {trip_id}")

    async def _load_contacts(self, user_id: str) -> List[EmergencyContact]:
        try:
            return await self.users.get_emergency_contacts(user_id)
        except PersistenceError as e:
            self.logger.error(f"Error loading emergency contacts for user {user_id}: {e}")
            return []

    async def _fan_out(self, event: EmergencyEvent, contacts: List[EmergencyContact]):
        if not contacts:
            self.logger.warning(f"User {event.user_id} has no emergency contacts to alert")
        self._reports[event.trip_id] = await self.dispatcher.fan_out(event, contacts)

    def _notify(self):
        try:
            self.presenter.present(NOTIFICATION_TITLE, NOTIFICATION_MESSAGE, priority='max')
        except Exception as e:
            self.logger.error(f"Error showing emergency notification: {e}")

    async def _push(self, event: EmergencyEvent, contacts: List[EmergencyContact]):
        if self.push is None:
            return
        try:
            await self.push.send_emergency_push(event, contacts)
        except AlertDispatchFailure as e:
            self.logger.error(f"Error sending emergency push notification: {e}")

    async def _on_recording_stopped(self, session: RecordingSession, recording_ref: Optional[str]):
        if recording_ref is None:
            return

        event = self._events.get(session.trip_id)
        if event is not None:
            event.recording_ref = recording_ref

        try:
            await self.store.update_fields(TRIPS_COLLECTION, session.trip_id, {
                'emergencyData.recordingRef': recording_ref,
                'updatedAt': now_ms()
            })
        except PersistenceError as e:
            self.logger.error(f"Error saving recording for trip {session.trip_id}: {e}")

    async def stop_recording(self) -> Optional[str]:
        """
        Stop the emergency recording

        Returns:
            The recorded file reference, or None if nothing was recording
        """
        return await self.recordings.stop()

    def is_recording(self) -> bool:
        return self.recordings.is_recording

    @property
    def recording_trip_id(self) -> Optional[str]:
        session = self.recordings.session
        return session.trip_id if session else None

    async def get_event(self, trip_id: str) -> Optional[EmergencyEvent]:
        """Emergency event for a trip, if one was triggered"""
        event = self._events.get(trip_id)
        if event is not None:
            return event
        trip = await load_trip(self.store, trip_id)
        return trip.emergency_data

    def get_alert_report(self, trip_id: str) -> Optional[AlertReport]:
        return self._reports.get(trip_id)

    def release_trip(self, trip_id: str):
        """Forget per-trip state once the trip is completed; the stored trip keeps the event"""
        lock = self._locks.get(trip_id)
        if lock is not None and not lock.locked():
            del self._locks[trip_id]
        self._events.pop(trip_id, None)
        self._reports.pop(trip_id, None)
        if trip_id in self._unpersisted:
            self.logger.warning(f"Emergency for trip {trip_id} was never saved")
            self._unpersisted.discard(trip_id)

    async def call_emergency_services(self) -> bool:
        """Open the dialer for the configured emergency number"""
        self.logger.warning(f"Calling emergency services at {self.emergency_number}")
        return await self.dispatcher.dial(self.emergency_number)
