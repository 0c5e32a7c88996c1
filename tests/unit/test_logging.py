"""
Unit tests for logging setup
"""

import json
import logging

import pytest

from hitchsafe.core.logging import (
    LogContext, get_logger, get_structured_logger, initialize_logging, parse_size
)


class TestParseSize:

    @pytest.mark.parametrize("value,expected", [
        ("512", 512),
        ("64KB", 64 * 1024),
        ("10MB", 10 * 1024 * 1024),
        ("1gb", 1024 ** 3),
        (2048, 2048),
    ])
    def test_sizes(self, value, expected):
        assert parse_size(value) == expected


class TestLoggingSetup:

    def test_file_logging_and_service_levels(self, temp_dir, restore_root_logger):
        log_file = temp_dir / "logs" / "hitchsafe.log"
        instance = initialize_logging({'logging': {
            'level': 'DEBUG',
            'file': str(log_file),
            'console': False,
            'services': {'location': 'WARNING'}
        }})
        try:
            get_logger('main').info("cli started")
            logging.getLogger('hitchsafe.services.location.location_tracker').info("sample written")

            for handler in instance.handlers:
                handler.flush()
            content = log_file.read_text()
        finally:
            instance.close()

        assert "hitchsafe.main - INFO - cli started" in content
        assert "sample written" not in content
        assert logging.getLogger('hitchsafe.services.location').level == logging.WARNING

    def test_unknown_level_rejected(self, temp_dir, restore_root_logger):
        with pytest.raises(ValueError):
            initialize_logging({'logging': {'level': 'CHATTY', 'file': str(temp_dir / "x.log")}})

    def test_structured_events_are_json(self, temp_dir, restore_root_logger):
        log_file = temp_dir / "events.log"
        instance = initialize_logging({'logging': {'level': 'INFO', 'file': str(log_file), 'console': False}})
        try:
            with LogContext(get_structured_logger('services.emergency'), trip_id="t1") as log:
                log.critical("emergency_triggered", role="hitchhiker")
            for handler in instance.handlers:
                handler.flush()
            line = log_file.read_text().strip().splitlines()[-1]
        finally:
            instance.close()

        event = json.loads(line.split(" - CRITICAL - ", 1)[1])
        assert event['event'] == "emergency_triggered"
        assert event['trip_id'] == "t1"
        assert event['role'] == "hitchhiker"
        assert event['logger'] == "hitchsafe.services.emergency"
