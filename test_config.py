"""
Broker configuration tests
==========================

Usage:
    pytest test_config.py
"""

import json

import pytest

from indy_cli.config import BrokerConfig
from indy_mqtt.errors import ConfigError


@pytest.fixture
def config_files(tmp_path):
    config = tmp_path / "config.yaml"
    secrets = tmp_path / "config-secrets.yaml"
    config.write_text('hostname: "mqtt.example.com"\nport: 8883\n')
    secrets.write_text('username: "indy"\npassword: "secret"\n')
    return config, secrets


def test_load(config_files):
    config, secrets = config_files

    broker = BrokerConfig.load(config, secrets)

    assert broker == BrokerConfig(
        hostname="mqtt.example.com", port=8883, username="indy", password="secret"
    )
    assert broker.tls
    assert broker.url == "ssl://mqtt.example.com:8883"


def test_json_files_are_accepted(tmp_path):
    config = tmp_path / "config.json"
    secrets = tmp_path / "config-secrets.json"
    config.write_text(json.dumps({"hostname": "mqtt.example.com", "port": 1883, "tls": False}))
    secrets.write_text(json.dumps({"username": "indy", "password": "secret"}))

    broker = BrokerConfig.load(str(config), str(secrets))

    assert broker.port == 1883
    assert not broker.tls
    assert broker.url == "tcp://mqtt.example.com:1883"


def test_ca_certs(config_files):
    config, secrets = config_files
    config.write_text('hostname: "mqtt.example.com"\nport: 8883\nca_certs: "/etc/ssl/indy.pem"\n')

    assert BrokerConfig.load(config, secrets).ca_certs == "/etc/ssl/indy.pem"


def test_environment_overrides_defaults(config_files, monkeypatch):
    config, secrets = config_files
    monkeypatch.setenv("INDY_MQTT_CONFIG", str(config))
    monkeypatch.setenv("INDY_MQTT_SECRETS", str(secrets))

    assert BrokerConfig.load().hostname == "mqtt.example.com"


def test_default_paths(tmp_path, monkeypatch):
    monkeypatch.delenv("INDY_MQTT_CONFIG", raising=False)
    monkeypatch.delenv("INDY_MQTT_SECRETS", raising=False)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigError) as exc_info:
        BrokerConfig.load()

    assert "config/config.yaml" in str(exc_info.value)


@pytest.mark.parametrize("config_text, secrets_text, message", [
    ("port: 8883\n", "username: u\npassword: p\n", "hostname not found in"),
    ("hostname: h\n", "username: u\npassword: p\n", "port not found in"),
    ("hostname: h\nport: 8883\n", "password: p\n", "username not found in"),
    ("hostname: h\nport: 8883\n", "username: u\n", "password not found in"),
    ("hostname: h\nport: 8883\n", "", "username not found in"),
])
def test_missing_fields(tmp_path, config_text, secrets_text, message):
    config = tmp_path / "config.yaml"
    secrets = tmp_path / "config-secrets.yaml"
    config.write_text(config_text)
    secrets.write_text(secrets_text)

    with pytest.raises(ConfigError) as exc_info:
        BrokerConfig.load(config, secrets)

    assert message in str(exc_info.value)


def test_missing_file(config_files, tmp_path):
    config, _ = config_files

    with pytest.raises(ConfigError) as exc_info:
        BrokerConfig.load(config, tmp_path / "nope.yaml")

    assert "nope.yaml" in str(exc_info.value)


@pytest.mark.parametrize("text", ["hostname: [unclosed\n", "- just\n- a list\n"])
def test_unparsable_file(config_files, text):
    config, secrets = config_files
    config.write_text(text)

    with pytest.raises(ConfigError) as exc_info:
        BrokerConfig.load(config, secrets)

    assert "unable to parse" in str(exc_info.value)


@pytest.mark.parametrize("port", [0, 65536, "http", True])
def test_invalid_port(port):
    with pytest.raises(ConfigError):
        BrokerConfig(hostname="h", port=port)


def test_string_port_is_converted(config_files):
    config, secrets = config_files
    config.write_text('hostname: h\nport: "8883"\n')

    assert BrokerConfig.load(config, secrets).port == 8883
