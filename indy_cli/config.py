"""
Broker configuration.

Connection settings live in two files so the credentials can be kept out
of version control:

    config/config.yaml            hostname, port (tls, ca_certs optional)
    config/config-secrets.yaml    username, password

Both are read with yaml.safe_load, so plain JSON files work too.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from indy_mqtt.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config/config.yaml")
DEFAULT_SECRETS_PATH = Path("config/config-secrets.yaml")

CONFIG_ENV_VAR = "INDY_MQTT_CONFIG"
SECRETS_ENV_VAR = "INDY_MQTT_SECRETS"


def _read_mapping(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"unable to read '{path}': file not found")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"unable to read '{path}': {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"unable to parse '{path}': {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"unable to parse '{path}': expected a mapping")
    return data


def _require(data: Dict[str, Any], key: str, path: Path) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise ConfigError(f"{key} not found in '{path}'")
    return value


@dataclass(frozen=True)
class BrokerConfig:
    """MQTT broker connection settings."""

    hostname: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    tls: bool = True
    ca_certs: Optional[str] = None

    def __post_init__(self):
        """Validate broker configuration."""
        if not self.hostname:
            raise ConfigError("hostname cannot be empty")

        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigError(f"port must be an integer, got {self.port!r}")

        if not 1 <= self.port <= 65535:
            raise ConfigError(
                f"port must be in [1, 65535], got {self.port}"
            )

    @property
    def url(self) -> str:
        scheme = "ssl" if self.tls else "tcp"
        return f"{scheme}://{self.hostname}:{self.port}"

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        secrets_path: Optional[Union[str, Path]] = None
    ) -> "BrokerConfig":
        """
        Load broker settings from the config and secrets files.

        Paths default to the INDY_MQTT_CONFIG / INDY_MQTT_SECRETS environment
        variables, then to config/config.yaml and config/config-secrets.yaml.

        Example config.yaml:
            hostname: "mqtt.example.com"
            port: 8883
            tls: true

        Example config-secrets.yaml:
            username: "indy"
            password: "secret"

        Raises:
            ConfigError: If a file is missing or unparsable, or a field is missing
        """
        config_path = Path(
            config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
        )
        secrets_path = Path(
            secrets_path or os.environ.get(SECRETS_ENV_VAR) or DEFAULT_SECRETS_PATH
        )

        config = _read_mapping(config_path)
        secrets = _read_mapping(secrets_path)

        port = _require(config, "port", config_path)
        if isinstance(port, str) and port.isdigit():
            port = int(port)

        ca_certs = config.get("ca_certs")

        return cls(
            hostname=str(_require(config, "hostname", config_path)),
            port=port,
            username=str(_require(secrets, "username", secrets_path)),
            password=str(_require(secrets, "password", secrets_path)),
            tls=bool(config.get("tls", True)),
            ca_certs=str(ca_certs) if ca_certs else None,
        )
