"""
Unit tests for ContactAlertDispatcher

Tests alert formatting, per-channel fan-out and failure isolation.
"""

from urllib.parse import unquote

import pytest

from hitchsafe.models.emergency import EmergencyEvent, ParticipantRole
from hitchsafe.models.location import LocationSample
from hitchsafe.models.user import EmergencyContact
from hitchsafe.services.alerts.contact_alert_dispatcher import (
    AlertChannel, ContactAlertDispatcher
)
from tests.base import BaseTestCase


class TestContactAlertDispatcher(BaseTestCase):
    """Test cases for ContactAlertDispatcher"""

    def setup_method(self):
        super().setup_method()
        self.event = EmergencyEvent(
            trip_id="t1",
            user_id="hiker-1",
            location=LocationSample(latitude=40.0, longitude=-74.0, timestamp=1_700_000_000_000),
            timestamp=1_700_000_000_000,
            message="Driver took a wrong turn",
            role=ParticipantRole.HITCHHIKER
        )

    def make_dispatcher(self, launcher):
        return ContactAlertDispatcher(launcher, {
            'tracking_base_url': 'https://hitchsafe.app/',
            'app_name': 'HitchSafe'
        })

    def test_tracking_url(self, launcher):
        dispatcher = self.make_dispatcher(launcher)
        assert dispatcher.build_tracking_url("t1") == "https://hitchsafe.app/track/t1"

    def test_sms_body(self, launcher):
        body = self.make_dispatcher(launcher).format_sms(self.event)

        assert body.startswith("🚨 EMERGENCY ALERT 🚨")
        assert "Driver took a wrong turn" in body
        assert "Location: 40.0, -74.0" in body
        assert "Track live location: https://hitchsafe.app/track/t1" in body
        assert "Time: 2023-11-14 22:13:20 UTC" in body
        assert body.endswith("This is an automated emergency alert from HitchSafe.")

    def test_email_content(self, launcher):
        email = self.make_dispatcher(launcher).format_email(self.event)

        assert email['subject'] == "🚨 Emergency Alert - HitchSafe"
        assert email['body'].startswith("EMERGENCY ALERT\n\n")
        assert "https://hitchsafe.app/track/t1" in email['body']

    @pytest.mark.asyncio
    async def test_fan_out_two_contacts(self, launcher):
        contacts = [
            EmergencyContact(name="A", phone_number="555-1"),
            EmergencyContact(name="B", phone_number="555-2", email="b@x.com"),
        ]

        report = await self.make_dispatcher(launcher).fan_out(self.event, contacts)

        sms = launcher.opened_with("sms")
        emails = launcher.opened_with("mailto")
        assert len(sms) == 2
        assert len(emails) == 1
        assert sms[0].startswith("sms:555-1?body=")
        assert sms[1].startswith("sms:555-2?body=")
        assert emails[0].startswith("mailto:b@x.com?subject=")
        for uri in sms + emails:
            assert "https://hitchsafe.app/track/t1" in unquote(uri)
        assert report.sms_sent == 2
        assert report.emails_sent == 1
        assert report.failures == []

    @pytest.mark.asyncio
    async def test_dispatch_order_follows_contacts(self, launcher):
        contacts = [
            EmergencyContact(name="A", phone_number="555-1", email="a@x.com"),
            EmergencyContact(name="B", phone_number="555-2"),
        ]

        report = await self.make_dispatcher(launcher).fan_out(self.event, contacts)

        assert [(r.contact.name, r.channel) for r in report.results] == [
            ("A", AlertChannel.SMS), ("A", AlertChannel.EMAIL), ("B", AlertChannel.SMS)
        ]

    @pytest.mark.asyncio
    async def test_unavailable_channel_does_not_stop_fan_out(self, launcher, sample_contacts):
        launcher.unavailable_schemes.add("sms")

        report = await self.make_dispatcher(launcher).fan_out(self.event, sample_contacts)

        assert report.sms_sent == 0
        assert report.emails_sent == 1
        assert len(report.failures) == 2
        assert all(r.error.channel == "sms" for r in report.failures)

    @pytest.mark.asyncio
    async def test_raising_launcher_is_isolated(self, launcher, sample_contacts):
        launcher.failing_schemes.add("mailto")

        report = await self.make_dispatcher(launcher).fan_out(self.event, sample_contacts)

        assert report.sms_sent == 2
        assert report.emails_sent == 0
        failure = report.failures[0].error
        assert failure.contact == "Bob"
        assert "crashed" in failure.reason
        assert report.to_dict()['failures'] == [
            {'contact': 'Bob', 'channel': 'email', 'reason': 'mailto handler crashed'}
        ]

    @pytest.mark.asyncio
    async def test_no_contacts(self, launcher):
        report = await self.make_dispatcher(launcher).fan_out(self.event, [])

        assert report.results == []
        assert launcher.opened == []

    @pytest.mark.asyncio
    async def test_dial(self, launcher):
        dispatcher = self.make_dispatcher(launcher)

        assert await dispatcher.dial("911")
        assert launcher.opened == ["tel:911"]

        launcher.unavailable_schemes.add("tel")
        assert not await dispatcher.dial("911")
