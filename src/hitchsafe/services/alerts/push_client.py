"""
Push notification client

Posts the emergency event to a configured HTTP endpoint that fans it out as
push notifications. Disabled unless push.enabled is set.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

import aiohttp

from hitchsafe.core.errors import AlertDispatchFailure
from hitchsafe.models.emergency import EmergencyEvent
from hitchsafe.models.user import EmergencyContact


class PushNotificationClient:
    """HTTP client for the emergency push endpoint"""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 tracking_url_builder=None):
        self.logger = logging.getLogger(__name__)
        self.config = config or {}
        self.enabled = bool(self.config.get('enabled', False))
        self.endpoint = self.config.get('endpoint')
        self.timeout_s = self.config.get('timeout_s', 10)
        self.tracking_url_builder = tracking_url_builder
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self):
        """Ensure HTTP session is created"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    def build_payload(self, event: EmergencyEvent,
                      contacts: Sequence[EmergencyContact]) -> Dict[str, Any]:
        payload = {
            'type': 'emergency',
            'event': event.to_dict(),
            'contacts': [contact.to_dict() for contact in contacts]
        }
        if self.tracking_url_builder is not None:
            payload['trackingUrl'] = self.tracking_url_builder(event.trip_id)
        return payload

    async def send_emergency_push(self, event: EmergencyEvent,
                                  contacts: Sequence[EmergencyContact]) -> bool:
        """
        Post the emergency to the push endpoint

        Returns:
            True when the endpoint accepted it, False when push is disabled

        Raises:
            AlertDispatchFailure: If the endpoint cannot be reached or rejects it
        """
        if not self.enabled or not self.endpoint:
            self.logger.debug("Push notifications disabled, skipping")
            return False

        await self._ensure_session()

        try:
            async with self.session.post(
                self.endpoint,
                json=self.build_payload(event, contacts),
                timeout=aiohttp.ClientTimeout(total=self.timeout_s),
                headers={'Content-Type': 'application/json'}
            ) as response:
                response.raise_for_status()
        except aiohttp.ClientResponseError as e:
            raise AlertDispatchFailure(self.endpoint, 'push', f"HTTP {e.status}")
        except aiohttp.ClientConnectionError as e:
            raise AlertDispatchFailure(self.endpoint, 'push', f"connection error: {e}")
        except asyncio.TimeoutError:
            raise AlertDispatchFailure(self.endpoint, 'push', f"timed out after {self.timeout_s}s")

        self.logger.info(f"Push notification sent for trip {event.trip_id}")
        return True

    async def close(self):
        """Close the HTTP session"""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None
