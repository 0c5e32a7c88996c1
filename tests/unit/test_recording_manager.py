"""
Unit tests for the emergency recording session manager
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from hitchsafe.core.errors import RecordingError
from hitchsafe.services.emergency.recording import RecordingSessionManager
from tests.base import BaseTestCase
from tests.utils import AsyncTestHelper


class TestRecordingSessionManager(BaseTestCase):
    """Test cases for RecordingSessionManager"""

    def make_manager(self, recorder, temp_dir, ceiling=300):
        manager = RecordingSessionManager(recorder, {
            'recording_ceiling_s': ceiling,
            'recordings_dir': str(temp_dir / "recordings")
        })
        manager.on_stopped = AsyncMock()
        return manager

    @pytest.mark.asyncio
    async def test_start_opens_session(self, audio_recorder, temp_dir):
        manager = self.make_manager(audio_recorder, temp_dir)

        session = await manager.start("t1")

        assert manager.is_recording
        assert session.trip_id == "t1"
        path = Path(session.path)
        assert path.parent == temp_dir / "recordings"
        assert path.name.startswith("emergency_recording_")
        assert path.suffix == ".mp4"
        await manager.stop()

    @pytest.mark.asyncio
    async def test_second_start_refused_while_recording(self, audio_recorder, temp_dir):
        manager = self.make_manager(audio_recorder, temp_dir)

        first = await manager.start("t1")
        second = await manager.start("t2")

        assert second is None
        assert manager.session is first
        assert len(audio_recorder.started) == 1
        await manager.stop()

    @pytest.mark.asyncio
    async def test_explicit_stop_closes_once(self, audio_recorder, temp_dir):
        manager = self.make_manager(audio_recorder, temp_dir)
        session = await manager.start("t1")

        recording_ref = await manager.stop()

        assert recording_ref == session.path
        assert session.timer.done()
        assert await manager.stop() is None
        assert len(audio_recorder.stopped) == 1
        manager.on_stopped.assert_awaited_once_with(session, session.path)

    @pytest.mark.asyncio
    async def test_auto_stop_fires_exactly_once(self, audio_recorder, temp_dir):
        manager = self.make_manager(audio_recorder, temp_dir, ceiling=0.05)
        session = await manager.start("t1")

        stopped = await AsyncTestHelper.wait_for_condition(lambda: not manager.is_recording, timeout=2.0)

        assert stopped
        assert await manager.stop() is None
        assert len(audio_recorder.stopped) == 1
        manager.on_stopped.assert_awaited_once_with(session, session.path)

    @pytest.mark.asyncio
    async def test_stale_timer_does_not_stop_newer_session(self, audio_recorder, temp_dir):
        manager = self.make_manager(audio_recorder, temp_dir)
        old_session = await manager.start("t1")
        await manager.stop()
        new_session = await manager.start("t2")

        manager.ceiling_s = 0
        await manager._auto_stop(old_session)

        assert manager.session is new_session
        assert len(audio_recorder.stopped) == 1
        await manager.stop()

    @pytest.mark.asyncio
    async def test_start_failure_leaves_no_session(self, audio_recorder, temp_dir):
        manager = self.make_manager(audio_recorder, temp_dir)
        audio_recorder.fail_start = True

        with pytest.raises(RecordingError):
            await manager.start("t1")

        assert not manager.is_recording

    @pytest.mark.asyncio
    async def test_stop_failure_still_clears_session(self, audio_recorder, temp_dir):
        manager = self.make_manager(audio_recorder, temp_dir)
        session = await manager.start("t1")
        audio_recorder.fail_stop = True

        assert await manager.stop() is None

        assert not manager.is_recording
        manager.on_stopped.assert_awaited_once_with(session, None)
