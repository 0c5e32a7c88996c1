"""
Emergency Service Package

Provides the emergency trigger state machine and the emergency audio
recording session.
"""

from .emergency_coordinator import EmergencyCoordinator
from .recording import RecordingSession, RecordingSessionManager

__all__ = ['EmergencyCoordinator', 'RecordingSession', 'RecordingSessionManager']
