"""
Core module for HitchSafe

Contains configuration management, logging, persistence, the collaborator
interfaces and the application context that wires services together.
"""

from .errors import (
    HitchSafeError,
    ConfigurationError,
    AuthError,
    PersistenceError,
    LocationUnavailable,
    RecordingError,
    InvalidQRPayload,
    AlertDispatchFailure,
    TripNotFoundError,
    TripConflictError
)

__all__ = [
    'HitchSafeError',
    'ConfigurationError',
    'AuthError',
    'PersistenceError',
    'LocationUnavailable',
    'RecordingError',
    'InvalidQRPayload',
    'AlertDispatchFailure',
    'TripNotFoundError',
    'TripConflictError'
]
