"""Shared TypedDict contracts for SSH MCP tools."""

from __future__ import annotations

from typing_extensions import TypedDict


class SessionInfo(TypedDict):
    session_id: str
    host: str
    port: int
    username: str
    connected: bool
    created_at: float
    last_activity: float
    command_count: int
    uptime: float


class ConnectResult(TypedDict):
    session_id: str
    host: str
    port: int
    username: str
    message: str


class SessionListResult(TypedDict):
    sessions: list[SessionInfo]
    count: int


class StatusResult(TypedDict):
    """Acknowledgement for operations that return nothing else."""

    status: str
    message: str


class CommandOutput(TypedDict):
    command: str
    stdout: str
    stderr: str
    exit_code: int | None
    signal: str | None


class BatchResult(TypedDict):
    results: list[CommandOutput]
    count: int
    all_succeeded: bool


class FileInfoResult(TypedDict):
    name: str
    longname: str
    type: str
    size: int
    permissions: str
    owner: int
    group: int
    access_time: str
    modify_time: str


class ListingResult(TypedDict):
    path: str
    entries: list[FileInfoResult]
    count: int


class TransferSummary(TypedDict):
    success: bool
    transferred: list[str]
    failed: list[str]
    errors: dict[str, str]


class ReadResult(TypedDict):
    path: str
    content: str
    size: int
    encoding: str


class ServerListResult(TypedDict):
    servers: list[dict[str, object]]
    count: int


class CapabilityInfo(TypedDict):
    ssh: bool
    sftp: bool


class ConnectionStatusResult(TypedDict):
    server_id: str
    server_name: str
    host: str
    connected: bool
    checked_at: str
    latency_ms: float | None
    error: str | None
    capabilities: CapabilityInfo


class ConnectionReport(TypedDict):
    results: list[ConnectionStatusResult]
    total: int
    connected: int
    failed: int


class PingResult(TypedDict):
    host: str
    port: int
    reachable: bool
    latency_ms: float | None
    error: str | None
