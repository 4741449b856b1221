"""
SSH session engines and MCP tools.

This package provides a session registry over paramiko connections, command
and SFTP engines operating on registered sessions, and the MCP tools that
expose them. Tool modules are loaded by `ssh_mcp.server`.
"""

from .connection_tester import ConnectionStatus, ConnectionTester
from .errors import (
    AuthenticationError,
    CommandTimeoutError,
    ConflictError,
    NotConnectedError,
    NotFoundError,
    ResourceExhaustedError,
    SSHError,
    TransportError,
)
from .models import CommandResult, DirectoryListing, FileInfo, Session, SessionSummary, TransferResult
from .remote_executor import RemoteExecutor
from .session_manager import SessionManager
from .sftp_operations import SFTPOperations

__all__ = [
    "AuthenticationError",
    "CommandResult",
    "CommandTimeoutError",
    "ConflictError",
    "ConnectionStatus",
    "ConnectionTester",
    "DirectoryListing",
    "FileInfo",
    "NotConnectedError",
    "NotFoundError",
    "RemoteExecutor",
    "ResourceExhaustedError",
    "SFTPOperations",
    "SSHError",
    "Session",
    "SessionManager",
    "SessionSummary",
    "TransferResult",
    "TransportError",
]
