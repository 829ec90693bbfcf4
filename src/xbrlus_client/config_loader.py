"""Helpers for resolving the client configuration.

Values come from the ``api`` section of a YAML file, overlaid with
``XBRLUS_*`` environment variables (a ``.env`` file is loaded first). The
file is read again on every call so edits are picked up by new clients.
"""

from __future__ import annotations

import os
import random
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/config.yaml"
DEFAULT_TIMEOUT = 30.0

REQUIRED_KEYS = ("base_url", "client_id", "client_secret", "platform", "username", "password")
# username/password keys must exist but may be null when tokens are already stored
NULLABLE_KEYS = ("username", "password")

ENV_PREFIX = "XBRLUS_"
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    client_id: str
    client_secret: str
    platform: str
    username: Optional[str] = None
    password: Optional[str] = None
    verify_tls: bool = True
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ClientConfig":
        """Validate ``values`` and build a config, listing every absent key."""

        missing = [
            key
            for key in REQUIRED_KEYS
            if key not in values or (key not in NULLABLE_KEYS and not values[key])
        ]
        if missing:
            raise ConfigurationError(
                "The following configuration parameters are missing: %s" % ", ".join(missing),
                missing=missing,
            )

        return cls(
            base_url=str(values["base_url"]).rstrip("/"),
            client_id=str(values["client_id"]),
            client_secret=str(values["client_secret"]),
            platform=str(values["platform"]),
            username=values["username"] or None,
            password=values["password"] or None,
            verify_tls=_as_bool(values.get("verify_tls", True)),
            timeout=float(values.get("timeout") or DEFAULT_TIMEOUT),
        )

    def with_credentials(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> "ClientConfig":
        return replace(
            self,
            username=username if username is not None else self.username,
            password=password if password is not None else self.password,
        )

    def with_random_platform(self) -> "ClientConfig":
        """Suffix the platform so concurrent instances keep separate token lineages."""

        return replace(self, platform=randomize_platform(self.platform))


def randomize_platform(platform: str) -> str:
    return f"{platform}{random.randint(10, 99)}{random.randint(10, 99)}"


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def _read_yaml(config_path: str) -> Dict[str, Any]:
    path = Path(config_path).expanduser()
    if not path.exists():
        return {}
    document = yaml.safe_load(path.read_text()) or {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    section = document.get("api", document)
    if not isinstance(section, dict):
        raise ConfigurationError(f"Section 'api' in {path} must be a mapping")
    return dict(section)


def _read_environment() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key in REQUIRED_KEYS + ("verify_tls", "timeout"):
        env_value = os.environ.get(ENV_PREFIX + key.upper())
        if env_value is not None:
            values[key] = env_value
    return values


def load_config(
    *,
    config_path: str = DEFAULT_CONFIG_PATH,
    env_file: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> ClientConfig:
    """Build a new ClientConfig from the YAML file and the environment."""

    load_dotenv(env_file or Path.cwd() / ".env")

    values: Dict[str, Any] = {"username": None, "password": None}
    values.update(_read_yaml(config_path))
    values.update(_read_environment())

    return ClientConfig.from_mapping(values).with_credentials(username, password)


class ConfigProvider(Protocol):
    def load(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> ClientConfig: ...


class FileConfigProvider:
    """Resolves configuration through :func:`load_config`."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, env_file: Optional[str] = None) -> None:
        self.config_path = config_path
        self.env_file = env_file

    def load(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> ClientConfig:
        return load_config(
            config_path=self.config_path,
            env_file=self.env_file,
            username=username,
            password=password,
        )


class MappingConfigProvider:
    """Resolves configuration from an in-process mapping."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def load(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> ClientConfig:
        values = {"username": None, "password": None}
        values.update(self._values)
        return ClientConfig.from_mapping(values).with_credentials(username, password)
