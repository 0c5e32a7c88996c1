"""
Error taxonomy for HitchSafe

Critical-path errors (identity, persistence, trip state) propagate to the
caller. Peripheral errors (recording, a single contact alert, notifications)
are caught and logged by the component that raised them.
"""

from typing import Optional


class HitchSafeError(Exception):
    """Base class for all HitchSafe errors"""
    pass


class ConfigurationError(HitchSafeError):
    """Configuration-related errors"""
    pass


class AuthError(HitchSafeError):
    """Identity provider failure carrying a provider error code"""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or code)


class PersistenceError(HitchSafeError):
    """Document store read/write failure"""
    pass


class LocationUnavailable(HitchSafeError):
    """Device position could not be obtained (timeout, denied permission, no fix)"""

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"Location unavailable: {reason}")


class RecordingError(HitchSafeError):
    """Audio recorder failed to start or stop"""
    pass


class InvalidQRPayload(HitchSafeError):
    """Scanned QR code is not a HitchSafe payload"""
    pass


class AlertDispatchFailure(HitchSafeError):
    """A single alert channel could not be reached for one contact"""

    def __init__(self, contact: str, channel: str, reason: str):
        self.contact = contact
        self.channel = channel
        self.reason = reason
        super().__init__(f"{channel} alert to {contact} failed: {reason}")


class TripNotFoundError(HitchSafeError):
    """Trip document does not exist"""

    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} not found")


class TripConflictError(HitchSafeError):
    """Requested trip transition conflicts with the current trip state"""
    pass
