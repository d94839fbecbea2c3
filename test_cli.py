"""
CLI tests
=========

Whole invocations through indy_cli.cli.run() over the in-memory client,
checking what the operator sees on stdout and stderr.

Usage:
    pytest test_cli.py
"""

import json
import socket

import pytest

from conftest import FakeMQTTClient, ack
from indy_cli import cli


@pytest.fixture(autouse=True)
def broker_config(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    secrets = tmp_path / "config-secrets.yaml"
    config.write_text('hostname: "mqtt.example.com"\nport: 8883\n')
    secrets.write_text('username: "indy"\npassword: "secret"\n')
    monkeypatch.setenv("INDY_MQTT_CONFIG", str(config))
    monkeypatch.setenv("INDY_MQTT_SECRETS", str(secrets))
    return config, secrets


def invoke(argv, **options):
    """Run the CLI; returns (exit status, fake clients created)."""
    clients = []

    def factory(client_id):
        client = FakeMQTTClient(client_id, **options)
        clients.append(client)
        return client

    return cli.run(argv, client_factory=factory), clients


def test_switch_on(capsys):
    status, clients = invoke(["-v", "esp-vorona", "switch", "on"], acks=[ack(200, "Switch turned on")])

    assert status == 0
    out = capsys.readouterr().out
    assert "Connecting to 'ssl://mqtt.example.com:8883' as user 'indy'" in out
    assert "Message published successfully" in out
    assert "Message was successfully acknowledged" in out
    assert out.rstrip().endswith("Switch turned on")

    client = clients[0]
    assert client.client_id == f"{socket.gethostname()}-indy-mqtt"
    assert client.published[0]["topic"] == "indy-switch/esp-vorona/control"
    assert client.disconnect_calls == 1


def test_status_prints_message_then_fields(capsys):
    content = {"device": "esp-vorona", "date": "2024-05-01", "is_on": True, "offset": 30}

    status, _ = invoke(["esp-vorona", "status"], acks=[ack(200, "OK", content=content)])

    assert status == 0
    captured = capsys.readouterr()
    assert captured.out.splitlines() == ["OK", "date: 2024-05-01", "is_on: true", "offset: 30"]
    assert captured.err == ""


def test_status_all_prints_device(capsys):
    content = {"device": "esp-vorona", "firmware": "1.4.2", "date": "2024-05-01"}

    invoke(["esp-vorona", "status", "all"], acks=[ack(200, content=content)])

    assert capsys.readouterr().out.splitlines() == [
        "device: esp-vorona",
        "firmware: 1.4.2",
        "date: 2024-05-01",
    ]


def test_handler_failure_is_reported_after_ack(capsys):
    status, _ = invoke(["esp-vorona", "status"], acks=[ack(200, "OK", content=[1, 2])])

    assert status == 0
    captured = capsys.readouterr()
    assert captured.out.strip() == "OK"
    assert "ERROR: Failed to handle ack:" in captured.err


def test_handler_failure_keeps_rendered_fields(capsys):
    content = {"date": "2024-05-01", "is_on": False, "sunset": {"June": "7:30 PM"}}

    status, _ = invoke(["esp-vorona", "status"], acks=[ack(200, "OK", content=content)])

    assert status == 0
    captured = capsys.readouterr()
    assert captured.out.splitlines() == ["OK", "date: 2024-05-01", "is_on: false"]
    assert "ERROR: Failed to handle ack: integer not found for key 'June'" in captured.err


def test_ack_error_code(capsys):
    status, _ = invoke(
        ["esp-vorona", "config", "timezone", "Mars/Olympus"],
        acks=[ack(400, "Invalid timezone")],
    )

    assert status == 0
    assert "ERROR: ACK error code 400: Invalid timezone" in capsys.readouterr().err


def test_ack_timeout(capsys):
    status, clients = invoke(["--timeout", "0.05", "esp-vorona", "switch", "off"])

    assert status == 0
    assert "ERROR: Timed out while waiting for ACK" in capsys.readouterr().err
    assert clients[0].disconnect_calls == 1


def test_subscribe_timeout(capsys):
    status, clients = invoke(["--timeout", "0.05", "esp-vorona", "switch", "off"], confirm_subscribe=False)

    assert status == 0
    assert (
        "ERROR: Timed out while waiting to subscribe to 'indy-switch/esp-vorona/ack'"
        in capsys.readouterr().err
    )
    assert clients[0].published == []


def test_publish_failure(capsys):
    status, _ = invoke(["esp-vorona", "switch", "off"], puback="Not authorized")

    assert status == 0
    assert "ERROR: Failed to publish: Not authorized" in capsys.readouterr().err


def test_restart_does_not_wait(capsys):
    status, clients = invoke(["-v", "esp-vorona", "restart"])

    assert status == 0
    assert clients[0].subscriptions == []
    assert json.loads(clients[0].published[0]["payload"])["content"] == {"reset": False}
    out = capsys.readouterr().out
    assert "Message published successfully" in out
    assert "Watching for ACK" not in out


def test_connection_refused(capsys):
    status, clients = invoke(["esp-vorona", "switch", "on"], connect_rc="Not authorized")

    assert status == 0
    assert "Unable to connect to ssl://mqtt.example.com:8883" in capsys.readouterr().err
    assert clients[0].published == []


def test_subscription_refused(capsys):
    status, _ = invoke(["esp-vorona", "switch", "on"], suback="Not authorized")

    assert status == 0
    assert "ERROR: Failed to subscribe to 'indy-switch/esp-vorona/ack'" in capsys.readouterr().err


@pytest.mark.parametrize("argv, message", [
    ([], "ERROR: No host specified"),
    (["esp-vorona"], "ERROR: No command specified"),
    (["esp-vorona", "explode"], "ERROR: Unrecognized command explode"),
    (["esp-vorona", "config", "offset", "0"], "ERROR: Offset needs to be a positive integer"),
])
def test_usage_errors(capsys, argv, message):
    status, clients = invoke(argv)

    assert status == 0
    assert clients == []
    err = capsys.readouterr().err
    assert err.startswith(message)
    assert "Commands:" in err
    assert "switch [on|off]" in err


def test_config_error(capsys, monkeypatch, tmp_path):
    monkeypatch.setenv("INDY_MQTT_SECRETS", str(tmp_path / "missing.yaml"))

    status, clients = invoke(["esp-vorona", "switch", "on"])

    assert status == 0
    assert clients == []
    assert "ERROR: Unable to read" in capsys.readouterr().err


def test_config_flags_override_environment(capsys, broker_config, monkeypatch):
    config, secrets = broker_config
    monkeypatch.setenv("INDY_MQTT_CONFIG", "/nonexistent/config.yaml")

    status, clients = invoke(
        ["--config", str(config), "--secrets", str(secrets), "esp-vorona", "switch", "on"],
        acks=[ack(200)],
    )

    assert status == 0
    assert len(clients) == 1


def test_json_logging(capsys):
    invoke(["--log-json", "--timeout", "0.05", "esp-vorona", "switch", "on"])

    entries = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
    assert entries[-1]["event"] == "ack.timeout"
    assert entries[-1]["level"] == "ERROR"


def test_malformed_option_exits_2(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.run(["--timeout", "soon", "esp-vorona", "status"])

    assert exc_info.value.code == 2


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.run(["--version"])

    assert exc_info.value.code == 0
    assert capsys.readouterr().out.startswith("indy-mqtt 1.0.0 (Python ")


def test_main_routes_sigterm_and_exits_0(monkeypatch):
    installed = {}
    monkeypatch.setattr(cli.signal, "signal", lambda signum, handler: installed.update({signum: handler}))
    monkeypatch.setattr(cli, "run", lambda: 0)

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 0
    handler = installed[cli.signal.SIGTERM]
    with pytest.raises(KeyboardInterrupt):
        handler(cli.signal.SIGTERM, None)
