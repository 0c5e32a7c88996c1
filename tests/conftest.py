"""
Global pytest configuration and fixtures for HitchSafe testing.
"""
import logging
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from hitchsafe.core.config import ConfigurationManager
from hitchsafe.core.database import DatabaseManager
from hitchsafe.core.document_store import SQLiteDocumentStore
from hitchsafe.models.location import LocationSample
from hitchsafe.models.user import EmergencyContact, User, UserType
from hitchsafe.services.identity.user_directory import UserDirectory
from tests.mocks.device_mocks import (
    MockAudioRecorder, MockLocationProvider, MockMessagingLauncher, MockNotificationPresenter
)
from tests.mocks.store_mocks import MockDocumentStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir):
    """Provide test configuration overrides."""
    return {
        "database": {
            "path": str(temp_dir / "hitchsafe.db"),
            "max_connections": 5
        },
        "logging": {
            "level": "DEBUG",
            "file": str(temp_dir / "logs" / "hitchsafe.log"),
            "console": False
        },
        "tracking": {
            "min_distance_m": 10.0,
            "min_interval_s": 5.0,
            "location_timeout_s": 0.5,
            "stream_retry_s": 0.01
        },
        "emergency": {
            "recording_ceiling_s": 300,
            "recordings_dir": str(temp_dir / "recordings"),
            "default_message": "Emergency Alert!",
            "emergency_number": "911"
        },
        "alerts": {
            "tracking_base_url": "https://hitchsafe.app",
            "app_name": "HitchSafe"
        }
    }


@pytest.fixture
def config_manager(test_config, temp_dir):
    """ConfigurationManager loaded from defaults plus the test overrides."""
    manager = ConfigurationManager(str(temp_dir / "config"))
    manager.load_dict(test_config)
    return manager


@pytest.fixture
def database(temp_dir):
    """SQLite database with the HitchSafe schema applied."""
    db = DatabaseManager(str(temp_dir / "test.db"), max_connections=5)
    yield db
    db.close()


@pytest.fixture
def sqlite_store(database):
    return SQLiteDocumentStore(database)


@pytest.fixture
def memory_store():
    return MockDocumentStore()


@pytest.fixture
def location_provider():
    return MockLocationProvider(LocationSample(latitude=40.0, longitude=-74.0, accuracy=5.0, timestamp=1_000_000))


@pytest.fixture
def audio_recorder():
    return MockAudioRecorder()


@pytest.fixture
def launcher():
    return MockMessagingLauncher()


@pytest.fixture
def presenter():
    return MockNotificationPresenter()


@pytest.fixture
def sample_contacts():
    """The two-contact list used across alert tests."""
    return [
        EmergencyContact(name="Alice", phone_number="555-1", relationship="sister"),
        EmergencyContact(name="Bob", phone_number="555-2", email="b@x.com", relationship="friend"),
    ]


@pytest_asyncio.fixture
async def registered_users(memory_store, sample_contacts):
    """A hitchhiker with two emergency contacts and a driver, in the memory store."""
    users = UserDirectory(memory_store)
    await users.create_user(User(
        uid="hiker-1", email="hiker@example.com", first_name="Hannah", last_name="Hiker",
        phone_number="555-0100", user_type=UserType.HITCHHIKER
    ))
    await users.create_user(User(
        uid="driver-1", email="driver@example.com", first_name="Dan", last_name="Driver",
        phone_number="555-0200", user_type=UserType.DRIVER
    ))
    for contact in sample_contacts:
        await users.add_emergency_contact("hiker-1", EmergencyContact(
            name=contact.name,
            phone_number=contact.phone_number,
            email=contact.email,
            relationship=contact.relationship
        ))
    return users


@pytest.fixture
def restore_root_logger():
    """Put back the root logger's handlers and level after initialize_logging."""
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
