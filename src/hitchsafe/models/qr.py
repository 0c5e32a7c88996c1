"""
QR code payload exchanged between users to start a trip

Wire format (JSON, UTF-8):
    {"userId": str, "name": str, "userType": "hitchhiker"|"driver", "timestamp": int}
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from hitchsafe.core.errors import InvalidQRPayload
from .location import now_ms
from .user import UserType


@dataclass
class QRPayload:
    """Identity shown by one user and scanned by the other"""
    user_id: str
    name: str
    user_type: Optional[UserType] = None
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'name': self.name,
            'userType': self.user_type.value if self.user_type else None,
            'timestamp': self.timestamp if self.timestamp is not None else now_ms()
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def parse_qr_payload(raw: Union[str, bytes]) -> QRPayload:
    """
    Decode a scanned QR payload

    Args:
        raw: Text (or UTF-8 bytes) read from the QR code

    Returns:
        Parsed QRPayload

    Raises:
        InvalidQRPayload: If the payload is not JSON, not an object, or lacks
            a non-empty userId or name
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise InvalidQRPayload(f"QR payload is not UTF-8: {e}")

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise InvalidQRPayload(f"Unable to read QR code data: {e}")

    if not isinstance(data, dict):
        raise InvalidQRPayload("QR payload must be a JSON object")

    user_id = data.get('userId')
    name = data.get('name')
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidQRPayload("QR payload is missing userId")
    if not isinstance(name, str) or not name.strip():
        raise InvalidQRPayload("QR payload is missing name")

    user_type = None
    if data.get('userType') is not None:
        try:
            user_type = UserType(data['userType'])
        except ValueError:
            raise InvalidQRPayload(f"Unknown userType: {data['userType']!r}")

    timestamp = data.get('timestamp')
    if timestamp is not None and not isinstance(timestamp, (int, float)):
        raise InvalidQRPayload("QR payload timestamp must be a number")

    return QRPayload(
        user_id=user_id,
        name=name,
        user_type=user_type,
        timestamp=int(timestamp) if timestamp is not None else None
    )
