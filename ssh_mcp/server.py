"""MCP server bootstrap and global state.

Initializes the FastMCP server, optionally configures Weave tracing, loads the
configuration manager and creates the process-wide session manager. The
global `mcp`, `config_manager` and `session_manager` objects are imported by
`main.py` and the tool modules.
"""

import os

import weave
from mcp.server.fastmcp import FastMCP

from ssh_mcp.config import ConfigManager, validate_config_schema
from ssh_mcp.SSH.session_manager import SessionManager

if os.getenv("WEAVE_PROJECT"):
    weave.init(os.environ["WEAVE_PROJECT"])

# Create the MCP server
mcp: FastMCP = FastMCP("SSH_MCP")
config_manager: ConfigManager = ConfigManager(os.getenv("SSH_MCP_CONFIG"))

# Validate the loaded configuration schema on startup for early feedback
try:
    validate_config_schema(config_manager.raw)
except Exception as e:
    raise RuntimeError(f"Invalid configuration schema: {e}") from e

_settings = config_manager.settings
session_manager: SessionManager = SessionManager(
    session_timeout=_settings.session_timeout,
    max_sessions=_settings.max_sessions,
    cleanup_interval=_settings.cleanup_interval,
)

# ruff: noqa: F401, E402
import ssh_mcp.SSH.tools
import ssh_mcp.SSH.sftp_tools
