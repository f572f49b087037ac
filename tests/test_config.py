"""Tests for RelayConfig."""

from __future__ import annotations

import inspect
import logging

import pytest

from forza_relay.config import RelayConfig
from forza_relay.relay.hub import BroadcastHub
from forza_relay.relay.listener import start_listener
from forza_relay.telemetry.schema import FH4_SCHEMA, FH5_SCHEMA


def test_defaults():
    config = RelayConfig.from_env({})
    assert config.host == "0.0.0.0"
    assert config.udp_port == 5555
    assert config.ws_port == 8765
    assert config.http_port == 8080
    assert config.schema is FH5_SCHEMA
    assert config.logging_level == logging.INFO


def test_runtime_defaults_come_from_config():
    config = RelayConfig()
    listener_params = inspect.signature(start_listener).parameters
    hub_params = inspect.signature(BroadcastHub).parameters

    assert listener_params["host"].default == config.host
    assert listener_params["port"].default == config.udp_port
    assert hub_params["buffer_size"].default == config.subscriber_buffer == 256


def test_env_overrides():
    config = RelayConfig.from_env({
        "HOST": "127.0.0.1",
        "UDP_PORT": "5300",
        "WS_PORT": "9000",
        "HTTP_PORT": "9001",
        "PACKET_FORMAT": "FH4",
        "LOG_LEVEL": "debug",
        "SUBSCRIBER_BUFFER": "32",
    })
    assert config.host == "127.0.0.1"
    assert (config.udp_port, config.ws_port, config.http_port) == (5300, 9000, 9001)
    assert config.schema is FH4_SCHEMA
    assert config.logging_level == logging.DEBUG
    assert config.subscriber_buffer == 32


def test_empty_values_keep_defaults():
    config = RelayConfig.from_env({"UDP_PORT": "", "HOST": ""})
    assert config.udp_port == 5555
    assert config.host == "0.0.0.0"


@pytest.mark.parametrize("var,value", [
    ("UDP_PORT", "abc"),
    ("UDP_PORT", "0"),
    ("WS_PORT", "70000"),
    ("HTTP_PORT", "-1"),
    ("PACKET_FORMAT", "fm7"),
    ("LOG_LEVEL", "chatty"),
    ("SUBSCRIBER_BUFFER", "many"),
    ("SUBSCRIBER_BUFFER", "0"),
])
def test_invalid_env_names_the_variable(var, value):
    with pytest.raises(ValueError, match=var):
        RelayConfig.from_env({var: value})


def test_reads_os_environ_by_default(monkeypatch):
    monkeypatch.setenv("UDP_PORT", "6000")
    assert RelayConfig.from_env().udp_port == 6000


def test_with_overrides_skips_none():
    base = RelayConfig.from_env({"UDP_PORT": "6000"})
    config = base.with_overrides(udp_port=None, ws_port=9100)
    assert config.udp_port == 6000
    assert config.ws_port == 9100


def test_with_overrides_validates():
    with pytest.raises(ValueError):
        RelayConfig().with_overrides(http_port=99999)


def test_with_overrides_unknown_option():
    with pytest.raises(TypeError):
        RelayConfig().with_overrides(colour="red")
