"""
Emergency Alerts Service Package

Provides contact alert fan-out over SMS/email links, push notifications,
and desktop launchers for alert URIs.
"""

from .contact_alert_dispatcher import ContactAlertDispatcher, AlertChannel, AlertResult, AlertReport
from .push_client import PushNotificationClient
from .launchers import SystemMessagingLauncher, LoggingNotificationPresenter

__all__ = [
    'ContactAlertDispatcher', 'AlertChannel', 'AlertResult', 'AlertReport',
    'PushNotificationClient',
    'SystemMessagingLauncher', 'LoggingNotificationPresenter'
]
