"""
Trip Location Tracking

Binds the device position stream to one trip at a time and writes
throttled samples into the trip's currentLocation field:
- One-shot position lookups with a timeout
- Cancellable subscriptions over the continuous position stream,
  reopened after stream errors
- Movement/elapsed-time throttling to bound write volume
- Stale sample rejection after stop or rebinding
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from hitchsafe.core.errors import LocationUnavailable, PersistenceError
from hitchsafe.core.interfaces import DocumentStore, LocationProvider
from hitchsafe.models.location import LocationSample, now_ms
from hitchsafe.core.trip_store import TRIPS_COLLECTION


EARTH_RADIUS_KM = 6371.0


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers (haversine)"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(d_lon / 2) ** 2)
    # Clamp rounding overshoot so sqrt(1 - a) stays real
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass
class ThrottlePolicy:
    """Accept a sample once it moved far enough or enough time passed"""
    min_distance_m: float = 10.0
    min_interval_s: float = 5.0

    def should_accept(self, last: Optional[LocationSample], sample: LocationSample) -> bool:
        if last is None:
            return True

        moved_m = calculate_distance(
            last.latitude, last.longitude, sample.latitude, sample.longitude
        ) * 1000
        if moved_m >= self.min_distance_m:
            return True

        elapsed_s = (sample.timestamp - last.timestamp) / 1000
        return elapsed_s >= self.min_interval_s


SampleHandler = Callable[['LocationSubscription', LocationSample], Awaitable[None]]
FixHandler = Callable[['LocationSubscription'], Awaitable[None]]


class LocationSubscription:
    """
    One continuous position watch bound to a trip.

    Consumes the provider's position stream in a background task and
    reopens it after an error or an unexpected end, until cancelled. An
    optional one-shot initial fix runs beside the stream. Once cancelled
    it is finished for good; tracking again creates a new subscription.
    """

    def __init__(self, trip_id: str, open_stream: Callable[[], AsyncIterator[LocationSample]],
                 on_sample: SampleHandler, initial_fix: Optional[FixHandler] = None,
                 retry_delay_s: float = 1.0):
        self.logger = logging.getLogger(__name__)
        self.trip_id = trip_id
        self._open_stream = open_stream
        self._on_sample = on_sample
        self._initial_fix = initial_fix
        self._retry_delay_s = retry_delay_s
        self._stream: Optional[AsyncIterator[LocationSample]] = None
        self._tasks: List[asyncio.Task] = []
        self._cancelled = False
        self.reopen_count = 0

    @property
    def active(self) -> bool:
        return not self._cancelled

    def start(self):
        if self._tasks or self._cancelled:
            return
        self._tasks.append(asyncio.create_task(self._run()))
        if self._initial_fix is not None:
            self._tasks.append(asyncio.create_task(self._initial_fix(self)))

    async def _run(self):
        while not self._cancelled:
            try:
                self._stream = self._open_stream()
                async for sample in self._stream:
                    if self._cancelled:
                        break
                    await self._on_sample(self, sample)
                else:
                    self.logger.warning(f"Position stream for trip {self.trip_id} ended")
            except LocationUnavailable as e:
                self.logger.warning(f"Position stream for trip {self.trip_id} interrupted: {e}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error(f"Position stream for trip {self.trip_id} failed: {e}")

            if self._cancelled:
                break
            await self._close_stream()
            self.reopen_count += 1
            self.logger.info(
                f"Reopening position stream for trip {self.trip_id} in {self._retry_delay_s}s"
            )
            await asyncio.sleep(self._retry_delay_s)

    async def _close_stream(self):
        stream, self._stream = self._stream, None
        aclose = getattr(stream, 'aclose', None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as e:
                self.logger.debug(f"Error closing position stream: {e}")

    async def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True

        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self.logger.error(f"Tracking task for trip {self.trip_id} failed: {e}")

        await self._close_stream()


class LocationTracker:
    """Keeps the bound trip's currentLocation fresh"""

    def __init__(self, provider: LocationProvider, store: DocumentStore,
                 config: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(__name__)
        self.provider = provider
        self.store = store
        self.config = config or {}

        self.throttle = ThrottlePolicy(
            min_distance_m=self.config.get('min_distance_m', 10.0),
            min_interval_s=self.config.get('min_interval_s', 5.0)
        )
        self.location_timeout_s = self.config.get('location_timeout_s', 15.0)
        self.stream_retry_s = self.config.get('stream_retry_s', 2.0)

        self._subscription: Optional[LocationSubscription] = None
        self._last_accepted: Optional[LocationSample] = None
        self._write_lock = asyncio.Lock()
        self.samples_written = 0

    @property
    def is_tracking(self) -> bool:
        return self._subscription is not None

    @property
    def current_trip_id(self) -> Optional[str]:
        return self._subscription.trip_id if self._subscription else None

    async def start_tracking(self, trip_id: str):
        """
        Bind to a trip and start writing its location

        Any previous subscription is stopped first, so only one trip
        document receives samples at a time. The initial fix is taken in
        the background; this returns without waiting for the device.
        """
        if self._subscription is not None:
            self.logger.info(
                f"Rebinding location tracking from trip {self._subscription.trip_id} to {trip_id}"
            )
            await self.stop_tracking()

        subscription = LocationSubscription(
            trip_id, self.provider.watch_positions, self._handle_sample,
            initial_fix=self._write_initial_fix, retry_delay_s=self.stream_retry_s
        )
        self._subscription = subscription
        self._last_accepted = None
        subscription.start()
        self.logger.info(f"Started location tracking for trip {trip_id}")

    async def stop_tracking(self):
        """Stop tracking; safe to call when already stopped"""
        subscription = self._subscription
        self._subscription = None
        self._last_accepted = None

        if subscription is None:
            return

        await subscription.cancel()
        self.logger.info(f"Stopped location tracking for trip {subscription.trip_id}")

    async def get_current_location(self, timeout: Optional[float] = None) -> LocationSample:
        """
        One-shot position lookup

        Raises:
            LocationUnavailable: On timeout or when the provider cannot get a fix
        """
        timeout = timeout if timeout is not None else self.location_timeout_s
        try:
            return await asyncio.wait_for(self.provider.get_current_position(timeout), timeout)
        except asyncio.TimeoutError:
            raise LocationUnavailable('timeout', f"No position fix within {timeout}s")

    async def _write_initial_fix(self, subscription: LocationSubscription):
        try:
            sample = await self.get_current_location()
        except LocationUnavailable as e:
            self.logger.warning(f"Initial position for trip {subscription.trip_id} unavailable: {e}")
            return
        await self._handle_sample(subscription, sample, initial=True)

    async def _handle_sample(self, subscription: LocationSubscription, sample: LocationSample,
                             initial: bool = False):
        async with self._write_lock:
            # Samples from a stopped or replaced subscription are never written
            if subscription is not self._subscription or not subscription.active:
                self.logger.debug(f"Dropping stale sample for trip {subscription.trip_id}")
                return

            # A streamed sample already beat the initial fix
            if initial and self._last_accepted is not None:
                return

            if not self.throttle.should_accept(self._last_accepted, sample):
                return

            trip_id = subscription.trip_id
            try:
                timestamp = now_ms()
                await self.store.update_fields(TRIPS_COLLECTION, trip_id, {
                    'currentLocation': sample.to_dict(),
                    'lastLocationUpdate': timestamp,
                    'updatedAt': timestamp
                })
            except PersistenceError as e:
                self.logger.error(f"Error updating location for trip {trip_id}: {e}")
                return

            self._last_accepted = sample
            self.samples_written += 1

    def get_tracking_status(self) -> Dict[str, Any]:
        return {
            'is_tracking': self.is_tracking,
            'current_trip_id': self.current_trip_id,
            'samples_written': self.samples_written,
            'stream_reopens': self._subscription.reopen_count if self._subscription else 0
        }
