"""
Trip document access shared by the trip, location and emergency services
"""

from hitchsafe.core.errors import PersistenceError, TripNotFoundError
from hitchsafe.core.interfaces import DocumentStore
from hitchsafe.models.trip import Trip


TRIPS_COLLECTION = 'trips'


async def load_trip(store: DocumentStore, trip_id: str) -> Trip:
    """
    Load and decode a trip document

    Raises:
        TripNotFoundError: If there is no such trip
        PersistenceError: If the read fails or the document is malformed
    """
    data = await store.get_document(TRIPS_COLLECTION, trip_id)
    if data is None:
        raise TripNotFoundError(trip_id)

    try:
        return Trip.from_dict(trip_id, data)
    except (KeyError, TypeError, ValueError) as e:
        raise PersistenceError(f"Malformed trip document {trip_id}: {e}") from e
