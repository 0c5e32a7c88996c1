"""
External collaborator interfaces for HitchSafe

The coordinators only talk to the outside world through these abstract
classes: identity, document persistence, device position, audio recording,
URI launching and local notifications. Every I/O call is a coroutine.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from hitchsafe.models.location import LocationSample


class IdentityProvider(ABC):
    """Authentication backend"""

    @abstractmethod
    def get_current_user(self) -> Optional[str]:
        """Return the signed-in user id, or None"""

    @abstractmethod
    async def sign_up(self, email: str, password: str, profile: Dict[str, Any]) -> str:
        """Create an account and return its user id. Raises AuthError."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> str:
        """Authenticate and return the user id. Raises AuthError."""

    @abstractmethod
    async def sign_out(self) -> None:
        """Forget the signed-in user"""


class DocumentStore(ABC):
    """
    Key-document store.

    Updates are last-write-wins per field: update_fields replaces only the
    named fields, so overlapping writers to different fields never lose each
    other's changes. All failures surface as PersistenceError.
    """

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document data, or None if it does not exist"""

    @abstractmethod
    async def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or fully replace a document"""

    @abstractmethod
    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id"""

    @abstractmethod
    async def update_fields(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Overwrite the given (dot-separated) fields of an existing document"""

    @abstractmethod
    async def add_to_subcollection(self, collection: str, doc_id: str,
                                   subcollection: str, data: Dict[str, Any]) -> str:
        """Append a child document and return its generated id"""

    @abstractmethod
    async def list_subcollection(self, collection: str, doc_id: str,
                                 subcollection: str) -> List[Dict[str, Any]]:
        """Return child documents in insertion order, each with an 'id' key"""


class LocationProvider(ABC):
    """Device geolocation"""

    @abstractmethod
    async def get_current_position(self, timeout: float) -> LocationSample:
        """One-shot fix. Raises LocationUnavailable."""

    @abstractmethod
    def watch_positions(self) -> AsyncIterator[LocationSample]:
        """
        Continuous position stream.

        Each call returns a new, unbounded async iterator. Closing it releases
        the underlying device watch.
        """


class AudioRecorder(ABC):
    """Device microphone recorder"""

    @abstractmethod
    async def start(self, path: str) -> Any:
        """Start recording to path and return a session handle. Raises RecordingError."""

    @abstractmethod
    async def stop(self, handle: Any) -> str:
        """Stop the session and return the recorded file reference. Raises RecordingError."""


class MessagingLauncher(ABC):
    """Opens pre-filled sms:, mailto: and tel: composers"""

    @abstractmethod
    async def open_uri(self, uri: str) -> bool:
        """Open the URI; False when no handler is registered"""


class NotificationPresenter(ABC):
    """Local notification display"""

    @abstractmethod
    def present(self, title: str, message: str, **options: Any) -> None:
        """Fire-and-forget display call"""
