"""Client configuration for pylivepeople."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pylivepeople._constants import PEOPLE_URL, PRESENCE_URL
from pylivepeople.exceptions import PeopleConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class PeopleConfig:
    """Client configuration.

    Parameters
    ----------
    access_token : str
        Bearer token sent with every people/presence request.
    people_url : str
        Base URL of the people service.
    presence_url : str
        Base URL of the presence service.
    request_timeout : float
        Total timeout in seconds applied to each HTTP request.
    mqtt_enabled : bool
        Start the MQTT listener that feeds presence push events.
    mqtt_host : str or None
        Broker host. The listener is skipped when unset.
    mqtt_port : int
        Broker port.
    mqtt_topic : str
        Topic carrying presence push events for this account.
    mqtt_username : str or None
        Broker username. Defaults to no authentication.
    mqtt_tls : bool
        Connect to the broker over TLS.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    api_trace_enabled : bool
        Log redacted request/response bodies at DEBUG level.
    """

    access_token: str
    people_url: str = PEOPLE_URL
    presence_url: str = PRESENCE_URL
    request_timeout: float = 30.0
    mqtt_enabled: bool = True
    mqtt_host: str | None = None
    mqtt_port: int = 8883
    mqtt_topic: str = "presence/updates"
    mqtt_username: str | None = None
    mqtt_tls: bool = True
    mqtt_keepalive: int = 120
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if not self.access_token or not self.access_token.strip():
            raise PeopleConfigError("access_token must be non-empty")
        if self.request_timeout <= 0:
            raise PeopleConfigError("request_timeout must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> PeopleConfig:
        """Create configuration from environment variables.

        Reads ``PEOPLE_ACCESS_TOKEN`` and optional ``PEOPLE_*`` variables.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        PeopleConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "PEOPLE_ACCESS_TOKEN": "access_token",
            "PEOPLE_BASE_URL": "people_url",
            "PEOPLE_PRESENCE_URL": "presence_url",
            "PEOPLE_MQTT_HOST": "mqtt_host",
            "PEOPLE_MQTT_TOPIC": "mqtt_topic",
            "PEOPLE_MQTT_USERNAME": "mqtt_username",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout_env = env.get("PEOPLE_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = float(timeout_env)

        port_env = env.get("PEOPLE_MQTT_PORT")
        if port_env is not None and "mqtt_port" not in overrides:
            config_kwargs["mqtt_port"] = int(port_env)

        keepalive_env = env.get("PEOPLE_MQTT_KEEPALIVE")
        if keepalive_env is not None and "mqtt_keepalive" not in overrides:
            config_kwargs["mqtt_keepalive"] = int(keepalive_env)

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("PEOPLE_MQTT_ENABLED"), True)

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("PEOPLE_MQTT_TLS"), True)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("PEOPLE_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        if "access_token" not in config_kwargs:
            raise PeopleConfigError("PEOPLE_ACCESS_TOKEN is not set")

        return cls(**config_kwargs)
