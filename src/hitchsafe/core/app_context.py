"""
Application context

Builds every HitchSafe service for one process and holds them together.
Services receive their collaborators through their constructors; nothing
is looked up from module-level globals.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import ConfigurationManager
from .database import DatabaseManager
from .document_store import SQLiteDocumentStore
from .interfaces import (
    AudioRecorder, DocumentStore, LocationProvider, MessagingLauncher, NotificationPresenter
)
from hitchsafe.services.alerts import (
    ContactAlertDispatcher, LoggingNotificationPresenter, PushNotificationClient,
    SystemMessagingLauncher
)
from hitchsafe.services.emergency import EmergencyCoordinator, RecordingSessionManager
from hitchsafe.services.identity import IdentityService, UserDirectory
from hitchsafe.services.location import LocationTracker
from hitchsafe.services.trip import TripCoordinator


@dataclass
class ApplicationContext:
    """All services of a running HitchSafe process"""
    config: ConfigurationManager
    database: Optional[DatabaseManager]
    store: DocumentStore
    users: UserDirectory
    identity: IdentityService
    tracker: LocationTracker
    dispatcher: ContactAlertDispatcher
    push: PushNotificationClient
    recordings: RecordingSessionManager
    emergency: EmergencyCoordinator
    trips: TripCoordinator

    async def close(self):
        """Stop tracking and recording, then release network and database resources"""
        await self.tracker.stop_tracking()
        await self.emergency.stop_recording()
        await self.push.close()
        if self.database is not None:
            self.database.close()
        logging.getLogger(__name__).info("Application context closed")


def build_context(config: ConfigurationManager,
                  location_provider: LocationProvider,
                  audio_recorder: AudioRecorder,
                  launcher: Optional[MessagingLauncher] = None,
                  presenter: Optional[NotificationPresenter] = None,
                  store: Optional[DocumentStore] = None) -> ApplicationContext:
    """
    Wire up all services

    Args:
        config: Loaded configuration
        location_provider: Device position source
        audio_recorder: Device microphone
        launcher: URI launcher for alerts (system handler if omitted)
        presenter: Local notification display (log output if omitted)
        store: Document store (SQLite at database.path if omitted)

    Returns:
        The assembled ApplicationContext
    """
    database = None
    if store is None:
        database = DatabaseManager(
            config.get('database.path', 'data/hitchsafe.db'),
            config.get('database.max_connections', 10)
        )
        store = SQLiteDocumentStore(database)

    launcher = launcher or SystemMessagingLauncher()
    presenter = presenter or LoggingNotificationPresenter()

    users = UserDirectory(store)
    identity = IdentityService(store, users, config.get_section('auth'))
    tracker = LocationTracker(location_provider, store, config.get_section('tracking'))
    dispatcher = ContactAlertDispatcher(launcher, config.get_section('alerts'))
    push = PushNotificationClient(config.get_section('push'), dispatcher.build_tracking_url)
    recordings = RecordingSessionManager(audio_recorder, config.get_section('emergency'))
    emergency = EmergencyCoordinator(
        store, users, tracker, dispatcher, recordings, presenter,
        push=push, config=config.get_section('emergency')
    )
    trips = TripCoordinator(store, users, tracker, emergency=emergency)

    return ApplicationContext(
        config=config,
        database=database,
        store=store,
        users=users,
        identity=identity,
        tracker=tracker,
        dispatcher=dispatcher,
        push=push,
        recordings=recordings,
        emergency=emergency,
        trips=trips
    )
