"""
Logging setup for HitchSafe

Plain stdlib loggers (``logging.getLogger(__name__)``) carry operational
messages; emergency events additionally go through structlog so each one is
a single JSON line with its trip and user attached.

Configuration comes from the ``logging`` section:

    level, file, max_size, backup_count, console, console_level,
    services: {<service>: <level>}

where each ``services`` entry sets the level of ``hitchsafe.services.<service>``.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog


FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'

# Libraries that log every request at INFO
QUIET_LOGGERS = ('asyncio', 'aiohttp.access', 'aiohttp.client', 'aiohttp.server')

_SIZE_UNITS = {'KB': 1024, 'MB': 1024 ** 2, 'GB': 1024 ** 3}


def parse_size(value: Any) -> int:
    """Byte count from '512', '64KB', '10MB' or '1GB'"""
    text = str(value).strip().upper()
    for unit, factor in _SIZE_UNITS.items():
        if text.endswith(unit):
            return int(text[:-len(unit)]) * factor
    return int(text)


def _level(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def _structlog_processors(json_output: bool = True):
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    return processors


def _configure_structlog():
    structlog.configure(
        processors=_structlog_processors(),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class HitchSafeLogger:
    """Installs HitchSafe's handlers on the root logger"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.log_config = config.get('logging', {}) or {}
        self.loggers: Dict[str, logging.Logger] = {}
        self.handlers = []
        self._setup_logging()

    def _setup_logging(self):
        level = _level(self.log_config.get('level', 'INFO'))

        _configure_structlog()

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        log_file = self.log_config.get('file', 'logs/hitchsafe.log')
        if log_file:
            self.handlers.append(self._file_handler(log_file, level))
        if self.log_config.get('console', True):
            console_level = _level(self.log_config.get('console_level', 'INFO'))
            self.handlers.append(self._console_handler(console_level))

        for handler in self.handlers:
            root_logger.addHandler(handler)

        for service, service_level in (self.log_config.get('services') or {}).items():
            logging.getLogger(f'hitchsafe.services.{service}').setLevel(_level(service_level))

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    def _file_handler(self, log_file: str, level: int) -> logging.Handler:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=parse_size(self.log_config.get('max_size', '10MB')),
            backupCount=self.log_config.get('backup_count', 5),
            encoding='utf-8'
        )
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        handler.setLevel(level)
        return handler

    @staticmethod
    def _console_handler(level: int) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
        handler.setLevel(level)
        return handler

    def get_logger(self, name: str) -> logging.Logger:
        """Logger under the hitchsafe namespace"""
        if name not in self.loggers:
            full_name = name if name.startswith('hitchsafe') else f'hitchsafe.{name}'
            self.loggers[name] = logging.getLogger(full_name)
        return self.loggers[name]

    def close(self):
        """Detach and close the handlers installed by this instance"""
        root_logger = logging.getLogger()
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers.clear()


_logger_instance: Optional[HitchSafeLogger] = None


def initialize_logging(config: Dict[str, Any]) -> HitchSafeLogger:
    """(Re)configure process-wide logging from the full configuration dict"""
    global _logger_instance
    if _logger_instance is not None:
        _logger_instance.close()
    _logger_instance = HitchSafeLogger(config)
    return _logger_instance


def get_logger(name: str) -> logging.Logger:
    if _logger_instance is None:
        return logging.getLogger(name if name.startswith('hitchsafe') else f'hitchsafe.{name}')
    return _logger_instance.get_logger(name)


def get_structured_logger(name: str) -> structlog.stdlib.BoundLogger:
    """structlog logger named hitchsafe.<name>, honouring stdlib levels"""
    if not structlog.is_configured():
        _configure_structlog()
    return structlog.get_logger(f'hitchsafe.{name}')


class LogContext:
    """Bind fields to a structured logger for the duration of a block"""

    def __init__(self, logger: structlog.stdlib.BoundLogger, **context):
        self.logger = logger
        self.context = context
        self.bound_logger = None

    def __enter__(self):
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False
