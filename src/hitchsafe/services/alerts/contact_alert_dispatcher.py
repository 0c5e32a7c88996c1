"""
Emergency Contact Alert Dispatcher

Formats the emergency alert for each of a user's contacts and hands
pre-filled sms: and mailto: links to the messaging launcher. Every channel
attempt stands alone: a failure is logged, recorded in the report, and the
fan-out moves on to the next attempt. Nothing is retried.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from hitchsafe.core.errors import AlertDispatchFailure
from hitchsafe.core.interfaces import MessagingLauncher
from hitchsafe.models.emergency import EmergencyEvent
from hitchsafe.models.user import EmergencyContact


class AlertChannel(Enum):
    """Channel an alert went out on"""
    SMS = "sms"
    EMAIL = "email"


@dataclass
class AlertResult:
    """Outcome of one channel attempt for one contact"""
    contact: EmergencyContact
    channel: AlertChannel
    uri: str
    delivered: bool
    error: Optional[AlertDispatchFailure] = None


@dataclass
class AlertReport:
    """Everything a fan-out pass attempted, in dispatch order"""
    trip_id: str
    results: List[AlertResult] = field(default_factory=list)

    def _count(self, channel: AlertChannel, delivered: bool = True) -> int:
        return sum(1 for r in self.results if r.channel is channel and r.delivered == delivered)

    @property
    def sms_sent(self) -> int:
        return self._count(AlertChannel.SMS)

    @property
    def emails_sent(self) -> int:
        return self._count(AlertChannel.EMAIL)

    @property
    def failures(self) -> List[AlertResult]:
        return [r for r in self.results if not r.delivered]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'trip_id': self.trip_id,
            'attempts': len(self.results),
            'sms_sent': self.sms_sent,
            'emails_sent': self.emails_sent,
            'failures': [
                {'contact': r.contact.name, 'channel': r.channel.value, 'reason': r.error.reason}
                for r in self.failures if r.error
            ]
        }


class ContactAlertDispatcher:
    """Builds and dispatches emergency alerts to emergency contacts"""

    def __init__(self, launcher: MessagingLauncher, config: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(__name__)
        self.launcher = launcher
        self.config = config or {}

        self.tracking_base_url = self.config.get('tracking_base_url', 'https://hitchsafe.app').rstrip('/')
        self.app_name = self.config.get('app_name', 'HitchSafe')

    def build_tracking_url(self, trip_id: str) -> str:
        """Live tracking link for a trip"""
        return f"{self.tracking_base_url}/track/{quote(trip_id, safe='')}"

    @staticmethod
    def format_timestamp(timestamp_ms: int) -> str:
        moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        return moment.strftime('%Y-%m-%d %H:%M:%S UTC')

    def _details(self, event: EmergencyEvent) -> str:
        return (
            f"{event.message}\n\n"
            f"Location: {event.location.latitude}, {event.location.longitude}\n\n"
            f"Track live location: {self.build_tracking_url(event.trip_id)}\n\n"
            f"Time: {self.format_timestamp(event.timestamp)}"
        )

    def format_sms(self, event: EmergencyEvent) -> str:
        return (
            f"🚨 EMERGENCY ALERT 🚨\n\n{self._details(event)}\n\n"
            f"This is an automated emergency alert from {self.app_name}."
        )

    def format_email(self, event: EmergencyEvent) -> Dict[str, str]:
        """Subject and body of the email alert"""
        return {
            'subject': f"🚨 Emergency Alert - {self.app_name}",
            'body': (
                f"EMERGENCY ALERT\n\n{self._details(event)}\n\n"
                f"This is an automated emergency alert from {self.app_name} app."
            )
        }

    def build_sms_uri(self, phone_number: str, event: EmergencyEvent) -> str:
        return f"sms:{phone_number}?body={quote(self.format_sms(event), safe='')}"

    def build_email_uri(self, email: str, event: EmergencyEvent) -> str:
        email_content = self.format_email(event)
        return (
            f"mailto:{email}"
            f"?subject={quote(email_content['subject'], safe='')}"
            f"&body={quote(email_content['body'], safe='')}"
        )

    async def fan_out(self, event: EmergencyEvent,
                      contacts: Sequence[EmergencyContact]) -> AlertReport:
        """
        Alert every contact, in stored order

        One SMS attempt per contact, plus one email attempt for contacts
        with an email address.

        Args:
            event: The emergency being reported
            contacts: The triggering user's emergency contacts

        Returns:
            AlertReport of every attempt
        """
        report = AlertReport(trip_id=event.trip_id)

        for contact in contacts:
            if contact.phone_number:
                uri = self.build_sms_uri(contact.phone_number, event)
                report.results.append(await self._dispatch(contact, AlertChannel.SMS, uri))
            else:
                failure = AlertDispatchFailure(contact.name, AlertChannel.SMS.value, 'no phone number')
                self.logger.warning(str(failure))
                report.results.append(AlertResult(contact, AlertChannel.SMS, '', False, failure))

            if contact.email:
                uri = self.build_email_uri(contact.email, event)
                report.results.append(await self._dispatch(contact, AlertChannel.EMAIL, uri))

        self.logger.info(
            f"Emergency alerts for trip {event.trip_id}: {report.sms_sent} SMS, "
            f"{report.emails_sent} email, {len(report.failures)} failed"
        )
        return report

    async def _dispatch(self, contact: EmergencyContact, channel: AlertChannel,
                        uri: str) -> AlertResult:
        recipient = contact.name or contact.phone_number
        try:
            opened = await self.launcher.open_uri(uri)
            if not opened:
                raise AlertDispatchFailure(recipient, channel.value, 'no handler for URI')
        except AlertDispatchFailure as e:
            self.logger.warning(str(e))
            return AlertResult(contact, channel, uri, False, e)
        except Exception as e:
            failure = AlertDispatchFailure(recipient, channel.value, str(e))
            self.logger.error(str(failure))
            return AlertResult(contact, channel, uri, False, failure)

        return AlertResult(contact, channel, uri, True)

    async def dial(self, number: str) -> bool:
        """Open the phone dialer for a number"""
        uri = f"tel:{number}"
        try:
            opened = await self.launcher.open_uri(uri)
        except Exception as e:
            self.logger.error(f"Error opening dialer for {number}: {e}")
            return False

        if not opened:
            self.logger.warning(f"No handler to dial {number}")
        return opened
