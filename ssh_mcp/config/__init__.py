from .credentials import DEFAULT_PORT, ServerConfig, SSHCredentials
from .manager import ConfigManager, Settings
from .validation import SchemaError, validate_config_schema

__all__ = [
    "ConfigManager",
    "DEFAULT_PORT",
    "SSHCredentials",
    "SchemaError",
    "ServerConfig",
    "Settings",
    "validate_config_schema",
]
