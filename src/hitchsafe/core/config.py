"""
Configuration for HitchSafe

Sources, lowest priority first:

1. built-in DEFAULTS
2. <config_dir>/default.yaml
3. <config_dir>/config.yaml
4. HITCHSAFE_* environment variables

Values are read with dotted keys (``config.get('tracking.min_distance_m')``)
and whole sections are handed to services as plain dicts.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

import yaml

from .errors import ConfigurationError


DEFAULTS: Dict[str, Any] = {
    "app": {
        "name": "HitchSafe",
        "version": "1.0.0",
        "debug": False,
        "log_level": "INFO"
    },
    "database": {
        "path": "data/hitchsafe.db",
        "max_connections": 10
    },
    "logging": {
        "level": "INFO",
        "file": "logs/hitchsafe.log",
        "max_size": "10MB",
        "backup_count": 5
    },
    "tracking": {
        "min_distance_m": 10.0,
        "min_interval_s": 5.0,
        "location_timeout_s": 15.0,
        "stream_retry_s": 2.0
    },
    "emergency": {
        "recording_ceiling_s": 300,
        "recordings_dir": "data/recordings",
        "default_message": "Emergency Alert!",
        "emergency_number": "911"
    },
    "alerts": {
        "tracking_base_url": "https://hitchsafe.app",
        "app_name": "HitchSafe"
    },
    "push": {
        "enabled": False,
        "endpoint": None,
        "timeout_s": 10
    },
    "auth": {
        "min_password_length": 6
    }
}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_number(value: str):
    try:
        return int(value)
    except ValueError:
        return float(value)


# Environment variable -> (dotted key, converter)
ENV_MAPPINGS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "HITCHSAFE_DEBUG": ("app.debug", _env_bool),
    "HITCHSAFE_LOG_LEVEL": ("app.log_level", str),
    "HITCHSAFE_DB_PATH": ("database.path", str),
    "HITCHSAFE_TRACKING_BASE_URL": ("alerts.tracking_base_url", str),
    "HITCHSAFE_RECORDING_CEILING": ("emergency.recording_ceiling_s", _env_number),
    "HITCHSAFE_EMERGENCY_NUMBER": ("emergency.emergency_number", str),
    "HITCHSAFE_PUSH_ENDPOINT": ("push.endpoint", str),
    "HITCHSAFE_PUSH_ENABLED": ("push.enabled", _env_bool),
}

REQUIRED_SECTIONS = ('app', 'database', 'tracking', 'emergency', 'alerts')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base; nested dicts merge key by key"""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def set_dotted(target: Dict[str, Any], key: str, value: Any) -> None:
    *parents, leaf = key.split('.')
    for part in parents:
        target = target.setdefault(part, {})
    target[leaf] = value


class ConfigurationManager:
    """Loads, validates and serves HitchSafe configuration"""

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config: Dict[str, Any] = {}
        self.defaults = copy.deepcopy(DEFAULTS)
        self.logger = logging.getLogger(__name__)

    def load_config(self) -> None:
        """Merge every source and validate the result"""
        layers = [
            ("defaults", self.defaults),
            ("default.yaml", self._read_file(self.config_dir / "default.yaml")),
            ("config.yaml", self._read_file(self.config_dir / "config.yaml")),
            ("environment", self._read_env()),
        ]

        merged: Dict[str, Any] = {}
        for name, layer in layers:
            if layer:
                merged = deep_merge(merged, copy.deepcopy(layer))
                self.logger.debug(f"Applied configuration from {name}")

        self.config = merged
        self.validate()
        self.logger.info(f"Configuration loaded from {self.config_dir}")

    def load_dict(self, overrides: Dict[str, Any]) -> None:
        """Use the built-in defaults plus an in-memory override dict"""
        self.config = deep_merge(copy.deepcopy(self.defaults), copy.deepcopy(overrides or {}))
        self.validate()

    def _read_env(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for env_var, (key, convert) in ENV_MAPPINGS.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                set_dotted(values, key, convert(raw))
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_var}: {raw!r}")
        return values

    def _read_file(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.suffix.lower() in ('.yaml', '.yml'):
                    data = yaml.safe_load(f) or {}
                elif path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported config file format: {path}")
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return data

    def validate(self) -> None:
        """
        Check the loaded configuration

        Raises:
            ConfigurationError: Listing every problem found
        """
        errors = [f"Missing required configuration section: {section}"
                  for section in REQUIRED_SECTIONS if section not in self.config]

        for key in ('tracking.min_distance_m', 'tracking.min_interval_s', 'tracking.location_timeout_s',
                    'tracking.stream_retry_s'):
            value = self.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0):
                errors.append(f"Invalid {key}: {value}")

        ceiling = self.get('emergency.recording_ceiling_s')
        if ceiling is not None and (not isinstance(ceiling, (int, float)) or ceiling <= 0):
            errors.append(f"Invalid emergency.recording_ceiling_s: {ceiling}")

        base_url = self.get('alerts.tracking_base_url', '')
        if not isinstance(base_url, str) or not base_url.startswith(('http://', 'https://')):
            errors.append(f"Invalid alerts.tracking_base_url: {base_url}")

        if self.get('push.enabled') and not self.get('push.endpoint'):
            errors.append("push.enabled requires push.endpoint")

        log_level = str(self.get('app.log_level', 'INFO')).upper()
        if log_level not in LOG_LEVELS:
            errors.append(f"Invalid log level: {log_level}")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def get(self, key: str, default: Any = None) -> Any:
        """Value at a dotted key, or default"""
        current: Any = self.config
        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def get_section(self, section: str) -> Dict[str, Any]:
        return self.get(section, {})

    def export_config(self, file_path: str) -> None:
        """Write the effective configuration as YAML or JSON"""
        path = Path(file_path)
        suffix = path.suffix.lower()
        if suffix not in ('.yaml', '.yml', '.json'):
            raise ConfigurationError(f"Unsupported export format: {path.suffix}")

        try:
            with open(path, 'w', encoding='utf-8') as f:
                if suffix == '.json':
                    json.dump(self.config, f, indent=2)
                else:
                    yaml.safe_dump(self.config, f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Export failed: {e}")

        self.logger.info(f"Configuration exported to {path}")
