"""
Test utilities and helper functions for HitchSafe testing.
"""
import asyncio
from typing import Callable

from hitchsafe.core.trip_store import TRIPS_COLLECTION
from hitchsafe.core.interfaces import DocumentStore
from hitchsafe.models.trip import Trip


class AsyncTestHelper:
    """Helper class for async testing operations."""

    @staticmethod
    async def wait_for_condition(condition: Callable[[], bool], timeout: float = 1.0) -> bool:
        """Wait for a condition to become true."""
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        while loop.time() - start_time < timeout:
            if condition():
                return True
            await asyncio.sleep(0.01)
        return False


async def store_trip(store: DocumentStore, trip: Trip) -> Trip:
    """Persist a trip under its own id."""
    await store.set_document(TRIPS_COLLECTION, trip.id, trip.to_dict())
    return trip
