"""
Desktop implementations of the messaging launcher and notification presenter
"""

import asyncio
import logging
import webbrowser
from typing import Any

from hitchsafe.core.interfaces import MessagingLauncher, NotificationPresenter


class SystemMessagingLauncher(MessagingLauncher):
    """Hands sms:, mailto: and tel: URIs to the system URI handler"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    async def open_uri(self, uri: str) -> bool:
        opened = await asyncio.to_thread(webbrowser.open, uri)
        if not opened:
            self.logger.warning(f"No handler registered for {uri.split(':', 1)[0]}: URIs")
        return bool(opened)


class LoggingNotificationPresenter(NotificationPresenter):
    """Writes local notifications to the log"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def present(self, title: str, message: str, **options: Any) -> None:
        self.logger.warning(f"{title}: {message}")
