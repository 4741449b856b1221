"""Utility helpers for SSH MCP tools.

This package groups small, focused helpers used by the SSH engines and tools:
- filemode: file-type classification of SFTP mode words
- masking: safe value masking for logs and sudo output scrubbing
- network: lightweight reachability checks
- types: shared TypedDict contracts for tool results
"""

from .types import (
    BatchResult,
    CapabilityInfo,
    CommandOutput,
    ConnectionReport,
    ConnectionStatusResult,
    ConnectResult,
    FileInfoResult,
    ListingResult,
    PingResult,
    ReadResult,
    ServerListResult,
    SessionInfo,
    SessionListResult,
    StatusResult,
    TransferSummary,
)

__all__ = [
    "BatchResult",
    "CapabilityInfo",
    "CommandOutput",
    "ConnectResult",
    "ConnectionReport",
    "ConnectionStatusResult",
    "FileInfoResult",
    "ListingResult",
    "PingResult",
    "ReadResult",
    "ServerListResult",
    "SessionInfo",
    "SessionListResult",
    "StatusResult",
    "TransferSummary",
]
