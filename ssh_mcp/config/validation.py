"""Schema validation for the YAML server configuration.

This module provides:
- structural checks for the `servers` list and the `settings` mapping
- a small list-normalisation helper shared with the config loader

Design goals:
- No external dependencies beyond PyYAML already used in the project
- An absent or empty file is valid: servers can also come from the
  environment or the command line
"""

from __future__ import annotations

from typing import Any, TypeVar


class SchemaError(ValueError):
    """Raised when the YAML configuration structure is invalid."""


T = TypeVar("T")

SERVER_STRING_FIELDS = (
    "name",
    "password",
    "private_key_path",
    "passphrase",
    "description",
)

SETTINGS_NUMERIC_FIELDS = (
    "session_timeout",
    "cleanup_interval",
    "connection_timeout",
    "command_timeout",
)


def _as_list(x: T | list[T] | None) -> list[T]:
    """Return a list form of the input.

    - None -> []
    - list[T] -> same list
    - T -> [T]
    """
    if x is None:
        return []
    if isinstance(x, list):
        return x
    return [x]


def _validate_server(i: int, server: Any, seen_ids: set[str]) -> None:
    if not isinstance(server, dict):
        raise SchemaError(f"servers[{i}] must be a mapping/object")
    for req in ("id", "host", "username"):
        if req not in server:
            raise SchemaError(f"servers[{i}] is missing required field '{req}'")
    server_id = str(server["id"]).strip()
    if not server_id:
        raise SchemaError(f"servers[{i}].id cannot be empty")
    if server_id in seen_ids:
        raise SchemaError(f"Duplicate server id '{server_id}'")
    seen_ids.add(server_id)
    if "port" in server:
        port = server["port"]
        if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
            raise SchemaError(f"servers[{i}].port must be an integer between 1 and 65535")
    for key in SERVER_STRING_FIELDS:
        if server.get(key) is not None and not isinstance(server[key], str):
            raise SchemaError(f"servers[{i}].{key} must be a string if provided")
    tags = server.get("tags")
    if tags is not None and not all(isinstance(t, str) for t in _as_list(tags)):
        raise SchemaError(f"servers[{i}].tags must be a list of strings")


def _validate_settings(settings: Any) -> None:
    if not isinstance(settings, dict):
        raise SchemaError("'settings' must be a mapping/object if provided")
    for key in SETTINGS_NUMERIC_FIELDS:
        value = settings.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise SchemaError(f"settings.{key} must be a positive number")
    max_sessions = settings.get("max_sessions")
    if max_sessions is not None:
        if isinstance(max_sessions, bool) or not isinstance(max_sessions, int) or max_sessions <= 0:
            raise SchemaError("settings.max_sessions must be a positive integer")
    default_server = settings.get("default_server")
    if default_server is not None and not isinstance(default_server, str):
        raise SchemaError("settings.default_server must be a string")


def validate_config_schema(data: dict[str, Any] | None) -> None:
    """Validate the high-level config schema.

    Checks:
    - servers: list of objects with required keys (id, host, username),
      optional port (int), string credentials/description and string tags
    - settings: mapping with positive timeouts and a positive max_sessions
    - settings.default_server, when servers are listed in the file, must
      reference one of them

    Raises:
        SchemaError: on structural issues; the message contains human-friendly details.
    """
    if data is None:
        return
    if not isinstance(data, dict):
        raise SchemaError("Top-level YAML must be a mapping/object")

    servers = data.get("servers")
    seen_ids: set[str] = set()
    if servers is not None:
        if not isinstance(servers, list):
            raise SchemaError("'servers' must be a list if provided")
        for i, server in enumerate(servers):
            _validate_server(i, server, seen_ids)

    settings = data.get("settings")
    if settings is None:
        return
    _validate_settings(settings)

    default_server = settings.get("default_server")
    if default_server and seen_ids and default_server not in seen_ids:
        raise SchemaError(
            f"settings.default_server references unknown server '{default_server}'"
        )
