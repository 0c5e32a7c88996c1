"""
Emergency audio recording session

At most one recording session exists per process. Each session is armed
with an auto-stop timer at start; whichever comes first of the timer and an
explicit stop closes the session, and the other becomes a no-op.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from hitchsafe.core.errors import RecordingError
from hitchsafe.core.interfaces import AudioRecorder
from hitchsafe.models.location import now_ms


@dataclass
class RecordingSession:
    """An open recording bound to the trip that started it"""
    handle: Any
    path: str
    trip_id: str
    started_at: int = field(default_factory=now_ms)
    timer: Optional[asyncio.Task] = None


StoppedCallback = Callable[[RecordingSession, Optional[str]], Awaitable[None]]


class RecordingSessionManager:
    """Owns the single recording session and its auto-stop timer"""

    def __init__(self, recorder: AudioRecorder, config: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(__name__)
        self.recorder = recorder
        self.config = config or {}

        self.ceiling_s = self.config.get('recording_ceiling_s', 300)
        self.recordings_dir = Path(self.config.get('recordings_dir', 'data/recordings'))

        self.on_stopped: Optional[StoppedCallback] = None
        self._session: Optional[RecordingSession] = None
        self._start_lock = asyncio.Lock()

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    def _build_path(self) -> str:
        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        return str(self.recordings_dir / f"emergency_recording_{now_ms()}.mp4")

    async def start(self, trip_id: str) -> Optional[RecordingSession]:
        """
        Open a recording session for a trip

        Returns:
            The new session, or None if one is already open

        Raises:
            RecordingError: If the recorder refuses to start
        """
        async with self._start_lock:
            if self._session is not None:
                self.logger.warning(
                    f"Recording already in progress for trip {self._session.trip_id}"
                )
                return None

            path = self._build_path()
            handle = await self.recorder.start(path)

            session = RecordingSession(handle=handle, path=path, trip_id=trip_id)
            session.timer = asyncio.create_task(self._auto_stop(session))
            self._session = session

        self.logger.info(f"Started emergency recording for trip {trip_id}: {path}")
        return session

    async def _auto_stop(self, session: RecordingSession):
        try:
            await asyncio.sleep(self.ceiling_s)
        except asyncio.CancelledError:
            return

        # A timer only ever stops the session that armed it
        if self._session is session:
            self.logger.info(f"Recording ceiling of {self.ceiling_s}s reached, stopping")
            await self.stop()

    async def stop(self) -> Optional[str]:
        """
        Close the open session

        Returns:
            The recorded file reference, or None when nothing was recording
            or the recorder failed to stop
        """
        session = self._session
        if session is None:
            return None
        self._session = None

        timer = session.timer
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass

        recording_ref = None
        try:
            recording_ref = await self.recorder.stop(session.handle)
            self.logger.info(f"Stopped emergency recording for trip {session.trip_id}")
        except RecordingError as e:
            self.logger.error(f"Error stopping recording for trip {session.trip_id}: {e}")

        if self.on_stopped is not None:
            try:
                await self.on_stopped(session, recording_ref)
            except Exception as e:
                self.logger.error(f"Error in recording stopped callback: {e}")

        return recording_ref
