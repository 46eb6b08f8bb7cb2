"""
Configuration parser for the Smart Wi-Fi Agent.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, List

from pydantic import ValidationError

from models import Thresholds


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required fields."""
    pass


LIVENESS_METHODS = ("http", "icmp")


class AgentConfig:
    """Agent configuration parser and validator."""

    REQUIRED_FIELDS = {
        'agent.interface': str,
        'agent.evaluation_interval': (int, float),
    }

    def __init__(self, config_dict: Dict[str, Any]):
        self._config = config_dict
        self._validate()

    def _validate(self):
        """Validate that all required fields are present and have correct types."""
        for field_path, expected_type in self.REQUIRED_FIELDS.items():
            value = self._get_nested_value(field_path)
            if value is None:
                raise ConfigurationError(f"Missing required field: {field_path}")

            if not isinstance(value, expected_type):
                raise ConfigurationError(
                    f"Field {field_path} has incorrect type. "
                    f"Expected {expected_type}, got {type(value)}"
                )

        if self.evaluation_interval <= 0:
            raise ConfigurationError("Field agent.evaluation_interval must be positive")

        if self.liveness_method not in LIVENESS_METHODS:
            raise ConfigurationError(
                f"Field liveness.method must be one of {LIVENESS_METHODS}, "
                f"got {self.liveness_method!r}"
            )

        # Builds and caches the thresholds, raising on out-of-range values
        self._thresholds = self._parse_thresholds()

    def _parse_thresholds(self) -> Thresholds:
        section = self._config.get('thresholds') or {}
        if not isinstance(section, dict):
            raise ConfigurationError("Field thresholds must be a mapping")
        try:
            return Thresholds(**section)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid thresholds: {e}")

    def _section(self, name: str) -> Dict[str, Any]:
        """Optional top-level section. A key written with no body reads as empty."""
        return self._config.get(name) or {}

    def _get_nested_value(self, field_path: str) -> Any:
        """Get value from nested dictionary using dot notation."""
        keys = field_path.split('.')
        value = self._config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return None
        return value

    @property
    def interface(self) -> str:
        return self._config['agent']['interface']

    @property
    def evaluation_interval(self) -> float:
        return self._config['agent']['evaluation_interval']

    @property
    def traffic_interval(self) -> float:
        return self._section('agent').get('traffic_interval', 1)

    @property
    def settle_delay(self) -> float:
        return self._section('agent').get('settle_delay', 0.5)

    @property
    def watch_connectivity(self) -> bool:
        return self._section('agent').get('watch_connectivity', True)

    @property
    def liveness_method(self) -> str:
        return self._section('liveness').get('method', 'http')

    @property
    def liveness_url(self) -> str:
        return self._section('liveness').get(
            'url', 'http://connectivitycheck.gstatic.com/generate_204'
        )

    @property
    def liveness_host(self) -> str:
        return self._section('liveness').get('host', '1.1.1.1')

    @property
    def liveness_timeout(self) -> float:
        return self._section('liveness').get('timeout', 3)

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    @property
    def hotspot_ssids(self) -> List[str]:
        return self._section('network').get('hotspot_ssids', [])

    @property
    def preferred_ssids(self) -> List[str]:
        return self._section('network').get('preferred_ssids', [])

    @property
    def modem(self) -> str:
        return self._section('network').get('modem', 'any')

    @property
    def gaming_processes(self) -> List[str]:
        return self._section('context').get('gaming_processes', [])

    @property
    def api_enabled(self) -> bool:
        return self._section('api').get('enabled', False)

    @property
    def api_listen_address(self) -> str:
        return self._section('api').get('listen_address', '127.0.0.1')

    @property
    def api_port(self) -> int:
        return self._section('api').get('port', 8080)

    @classmethod
    def from_file(cls, config_path: str) -> 'AgentConfig':
        """Load configuration from YAML file."""
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(path, 'r') as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML: {e}")

        if config_dict is None:
            raise ConfigurationError("Configuration file is empty")

        return cls(config_dict)
