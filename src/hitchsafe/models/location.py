"""
Location data models for HitchSafe
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch"""
    return int(time.time() * 1000)


@dataclass
class LocationSample:
    """A single device position fix"""
    latitude: float
    longitude: float
    accuracy: float = 0.0
    altitude: Optional[float] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to document representation"""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy': self.accuracy,
            'altitude': self.altitude,
            'speed': self.speed,
            'heading': self.heading,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LocationSample':
        """Create from document representation"""
        return cls(
            latitude=float(data['latitude']),
            longitude=float(data['longitude']),
            accuracy=float(data.get('accuracy') or 0.0),
            altitude=data.get('altitude'),
            speed=data.get('speed'),
            heading=data.get('heading'),
            timestamp=int(data.get('timestamp') or now_ms())
        )
