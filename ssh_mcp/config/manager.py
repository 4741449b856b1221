"""Configuration loader for SSH servers and runtime settings.

Servers are merged from three sources, later ones winning on duplicate ids:
a YAML file, `SSH_SERVER_<ID>_<FIELD>` environment variables and a server
given on the command line. Global settings come from the YAML `settings`
mapping and can be overridden with `SSH_*` environment variables.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import yaml
from dotenv import load_dotenv

from .credentials import DEFAULT_PORT, ServerConfig, SSHCredentials
from .validation import SchemaError, _as_list

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SSH_MCP_CONFIG"

DEFAULT_CONFIG_LOCATIONS = (
    Path("servers.yaml"),
    Path("config") / "servers.yaml",
    Path.home() / ".ssh-mcp" / "servers.yaml",
)

_ENV_SERVER_RE = re.compile(r"^SSH_SERVER_([A-Za-z0-9]+)_([A-Za-z_]+)$")

_ENV_FIELD_ALIASES = {
    "host": "host",
    "port": "port",
    "user": "username",
    "username": "username",
    "pass": "password",
    "password": "password",
    "key": "private_key_path",
    "private_key": "private_key_path",
    "privatekey": "private_key_path",
    "passphrase": "passphrase",
    "name": "name",
    "desc": "description",
    "description": "description",
    "tags": "tags",
}

_ENV_SETTINGS = {
    "SSH_SESSION_TIMEOUT": ("session_timeout", float),
    "SSH_MAX_SESSIONS": ("max_sessions", int),
    "SSH_CLEANUP_INTERVAL": ("cleanup_interval", float),
    "SSH_CONNECTION_TIMEOUT": ("connection_timeout", float),
    "SSH_COMMAND_TIMEOUT": ("command_timeout", float),
    "SSH_DEFAULT_SERVER": ("default_server", str),
}


@dataclass
class Settings:
    """Global runtime settings. Durations are in seconds."""

    session_timeout: float = 30 * 60
    max_sessions: int = 100
    cleanup_interval: float = 5 * 60
    connection_timeout: float = 30.0
    command_timeout: float = 30.0
    default_server: str | None = None


class ConfigManager:
    """Manage access to server definitions and global settings.

    The YAML file may contain a top-level "servers" key with a list of server
    objects (each defines at least "id", "host" and "username"; optional keys
    are "name", "port", "password", "private_key_path", "passphrase",
    "description" and "tags") and a "settings" mapping.

    Args:
        config_path: Path to the YAML configuration file. When omitted the
            `SSH_MCP_CONFIG` environment variable and a few conventional
            locations are tried; a missing file means no file servers.
        cli_server: Optional server supplied on the command line. It takes
            precedence over every other source and becomes the default.
        load_env_file: Whether to load a `.env` file into the environment.
    """

    def __init__(
        self,
        config_path: Union[str, Path, None] = None,
        *,
        cli_server: ServerConfig | None = None,
        load_env_file: bool = True,
    ):
        if load_env_file:
            load_dotenv()
        self.config_path = self._find_config_file(config_path)
        self.cli_server = cli_server
        self.raw: dict[str, Any] = {}
        self.settings = Settings()
        self._servers: dict[str, ServerConfig] = {}
        self.reload()

    @staticmethod
    def _find_config_file(config_path: Union[str, Path, None]) -> Path | None:
        if config_path:
            return Path(config_path).expanduser()
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        for candidate in DEFAULT_CONFIG_LOCATIONS:
            if candidate.is_file():
                logger.info("Found config file: %s", candidate)
                return candidate
        return None

    def reload(self) -> None:
        """(Re)load servers and settings from every source."""
        self.raw = self._load_yaml()
        self.settings = self._load_settings(self.raw.get("settings") or {})

        servers: dict[str, ServerConfig] = {}
        for entry in _as_list(self.raw.get("servers")):
            server = self._server_from_mapping(entry)
            servers[server.id] = server
        file_count = len(servers)

        for server in self._load_env_servers():
            servers[server.id] = server

        if self.cli_server is not None:
            servers[self.cli_server.id] = self.cli_server
            self.settings.default_server = self.cli_server.id
            logger.info(
                "Loaded server from CLI: %s (%s)", self.cli_server.name, self.cli_server.host
            )

        self._servers = servers
        logger.info(
            "Loaded %d servers (%d from file, %d from environment/CLI)",
            len(servers),
            file_count,
            len(servers) - file_count,
        )

    def _load_yaml(self) -> dict[str, Any]:
        """Load the YAML configuration file; a missing file yields an empty mapping.

        Raises:
            SchemaError: If the file does not contain a mapping at the top level.
        """
        if self.config_path is None or not self.config_path.is_file():
            if self.config_path is not None:
                logger.warning("Config file not found: %s", self.config_path)
            return {}
        with open(self.config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise SchemaError("Top-level YAML must be a mapping/object")
        return data

    @staticmethod
    def _load_settings(file_settings: dict[str, Any]) -> Settings:
        settings = Settings()
        for key, value in file_settings.items():
            if hasattr(settings, key) and value is not None:
                setattr(settings, key, value)

        for env_key, (attr, cast) in _ENV_SETTINGS.items():
            value = os.getenv(env_key)
            if not value:
                continue
            try:
                setattr(settings, attr, cast(value))
            except ValueError:
                logger.warning("Ignoring invalid value for %s: %r", env_key, value)
        return settings

    @staticmethod
    def _server_from_mapping(entry: dict[str, Any]) -> ServerConfig:
        server_id = str(entry["id"]).strip()
        return ServerConfig(
            id=server_id,
            name=str(entry.get("name") or server_id),
            host=str(entry["host"]),
            username=str(entry["username"]),
            port=int(entry.get("port", DEFAULT_PORT)),
            password=entry.get("password"),
            private_key_path=entry.get("private_key_path"),
            passphrase=entry.get("passphrase"),
            description=entry.get("description"),
            tags=[str(t) for t in _as_list(entry.get("tags"))],
        )

    @staticmethod
    def _load_env_servers() -> list[ServerConfig]:
        """Build servers from `SSH_SERVER_<ID>_<FIELD>` environment variables.

        Entries without both a host and a username are skipped.
        """
        fields_by_id: dict[str, dict[str, str]] = {}
        for key, value in os.environ.items():
            m = _ENV_SERVER_RE.match(key)
            if not m:
                continue
            # The id segment cannot contain "_", so the field keeps its underscores.
            field_name = _ENV_FIELD_ALIASES.get(m.group(2).lower())
            if field_name is None:
                continue
            fields_by_id.setdefault(m.group(1), {})[field_name] = value

        servers: list[ServerConfig] = []
        for raw_id, fields in sorted(fields_by_id.items()):
            if not fields.get("host") or not fields.get("username"):
                logger.warning("Skipping env server %s: host and username are required", raw_id)
                continue
            try:
                port = int(fields.get("port") or DEFAULT_PORT)
            except ValueError:
                logger.warning("Skipping env server %s: invalid port", raw_id)
                continue
            tags = [t.strip() for t in fields.get("tags", "").split(",") if t.strip()]
            servers.append(
                ServerConfig(
                    id=raw_id.lower(),
                    name=fields.get("name") or raw_id,
                    host=fields["host"],
                    username=fields["username"],
                    port=port,
                    password=fields.get("password"),
                    private_key_path=fields.get("private_key_path"),
                    passphrase=fields.get("passphrase"),
                    description=fields.get("description"),
                    tags=tags,
                )
            )
        return servers

    def list_servers(self, tag: str | None = None) -> list[ServerConfig]:
        """Return configured servers, optionally only those carrying `tag`."""
        servers = list(self._servers.values())
        if tag:
            servers = [s for s in servers if s.has_tag(tag)]
        return servers

    def server_info_list(self, tag: str | None = None) -> list[dict[str, object]]:
        """Return server descriptions safe to hand to clients (no secrets)."""
        return [s.public_info() for s in self.list_servers(tag)]

    def get_server(self, server_id: str) -> ServerConfig | None:
        return self._servers.get(server_id)

    def get_server_by_name(self, name: str) -> ServerConfig | None:
        """Case-insensitive lookup by display name."""
        for server in self._servers.values():
            if server.name.lower() == name.lower():
                return server
        return None

    def get_default_server(self) -> ServerConfig | None:
        if self.settings.default_server:
            return self.get_server(self.settings.default_server)
        return next(iter(self._servers.values()), None)

    def get_credentials(
        self, server_id: str, password_override: str | None = None
    ) -> SSHCredentials:
        """Return SSH credentials for the requested server.

        Args:
            server_id: Id of the server as configured.
            password_override: Password to use instead of the configured one.

        Raises:
            ValueError: If the server id cannot be found in the configuration.
        """
        server = self.get_server(server_id)
        if server is None:
            raise ValueError(f"Server not found: {server_id}")
        return server.to_credentials(
            password_override=password_override,
            connect_timeout=self.settings.connection_timeout,
        )
