"""
Mock device collaborators for HitchSafe testing.
"""
import asyncio
from typing import Any, AsyncIterator, List, Optional, Set, Union

from hitchsafe.core.errors import LocationUnavailable, RecordingError
from hitchsafe.core.interfaces import (
    AudioRecorder, LocationProvider, MessagingLauncher, NotificationPresenter
)
from hitchsafe.models.location import LocationSample


class MockLocationProvider(LocationProvider):
    """Location provider driven by the test: fixes are set, stream samples are emitted."""

    def __init__(self, position: Optional[LocationSample] = None):
        self.position = position or LocationSample(latitude=40.0, longitude=-74.0, accuracy=5.0)
        self.fail_reason: Optional[str] = None
        self.hang = False
        self.fix_requests = 0
        self.watches_opened = 0
        self.watches_closed = 0
        self._queues: List[asyncio.Queue] = []

    async def get_current_position(self, timeout: float) -> LocationSample:
        self.fix_requests += 1
        if self.hang:
            await asyncio.sleep(timeout + 60)
        if self.fail_reason:
            raise LocationUnavailable(self.fail_reason)
        return self.position

    def watch_positions(self) -> AsyncIterator[LocationSample]:
        self.watches_opened += 1
        return self._stream()

    async def _stream(self):
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                sample = await queue.get()
                if sample is None:
                    return
                if isinstance(sample, Exception):
                    raise sample
                yield sample
        finally:
            self.watches_closed += 1
            if queue in self._queues:
                self._queues.remove(queue)

    @property
    def open_watches(self) -> int:
        return len(self._queues)

    async def emit(self, sample: Union[LocationSample, Exception]):
        """Deliver a sample, or an error to raise, to every open watch and let consumers run."""
        await settle()
        for queue in list(self._queues):
            queue.put_nowait(sample)
        await settle()


class MockAudioRecorder(AudioRecorder):
    """Audio recorder that records start/stop calls."""

    def __init__(self):
        self.fail_start = False
        self.fail_stop = False
        self.started: List[str] = []
        self.stopped: List[Any] = []
        self._handles = 0

    async def start(self, path: str) -> Any:
        if self.fail_start:
            raise RecordingError("Microphone permission denied")
        self._handles += 1
        self.started.append(path)
        return {'handle': self._handles, 'path': path}

    async def stop(self, handle: Any) -> str:
        self.stopped.append(handle)
        if self.fail_stop:
            raise RecordingError("Recorder crashed")
        return handle['path']


class MockMessagingLauncher(MessagingLauncher):
    """Launcher that records opened URIs; schemes can be made unavailable or failing."""

    def __init__(self):
        self.opened: List[str] = []
        self.unavailable_schemes: Set[str] = set()
        self.failing_schemes: Set[str] = set()

    async def open_uri(self, uri: str) -> bool:
        scheme = uri.split(':', 1)[0]
        if scheme in self.failing_schemes:
            raise RuntimeError(f"{scheme} handler crashed")
        if scheme in self.unavailable_schemes:
            return False
        self.opened.append(uri)
        return True

    def opened_with(self, scheme: str) -> List[str]:
        return [uri for uri in self.opened if uri.startswith(f"{scheme}:")]


class MockNotificationPresenter(NotificationPresenter):
    """Presenter that keeps every notification."""

    def __init__(self):
        self.notifications: List[dict] = []
        self.fail = False

    def present(self, title: str, message: str, **options: Any) -> None:
        if self.fail:
            raise RuntimeError("Notifications unavailable")
        self.notifications.append({'title': title, 'message': message, **options})


async def settle(rounds: int = 10):
    """Yield to the event loop so background tasks can make progress."""
    for _ in range(rounds):
        await asyncio.sleep(0)
