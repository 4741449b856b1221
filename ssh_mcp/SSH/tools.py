"""MCP tools for SSH sessions, remote commands and configured servers.

Each tool is a thin async wrapper: the blocking paramiko work lives in a
module-level helper that is run on a worker thread, so one slow host never
stalls calls against other sessions. Engine errors propagate and FastMCP
reports them as tool errors.

Tools provided:
- Connection: `ssh_connect`, `ssh_disconnect`, `ssh_list_sessions`, `ssh_session_info`
- Command: `ssh_exec`, `ssh_exec_batch`, `ssh_exec_with_input`, `ssh_sudo_exec`
- Server: `ssh_list_servers`, `ssh_get_server`, `ssh_test_connection`,
  `ssh_test_all_connections`, `ssh_ping`, `ssh_connect_by_id`
"""

# ruff: noqa: I001
import asyncio
import logging
from typing import Annotated

import weave

from ssh_mcp.config import DEFAULT_PORT, ServerConfig, SSHCredentials
from ssh_mcp.server import mcp, config_manager, session_manager

from .connection_tester import ConnectionTester
from .errors import NotFoundError
from .models import CommandResult
from .remote_executor import RemoteExecutor
from .utils.types import (
    BatchResult,
    CommandOutput,
    ConnectionReport,
    ConnectionStatusResult,
    ConnectResult,
    PingResult,
    ServerListResult,
    SessionInfo,
    SessionListResult,
    StatusResult,
)

logger = logging.getLogger(__name__)


# -----------------------
# Helpers
# -----------------------


def _executor(session_id: str) -> RemoteExecutor:
    session = session_manager.get_session(session_id)
    return RemoteExecutor(session, default_timeout=config_manager.settings.command_timeout)


def _command_output(command: str, result: CommandResult) -> CommandOutput:
    return {
        "command": command,
        "stdout": result.stdout,
        "stderr": result.stderr,
        "exit_code": result.exit_code,
        "signal": result.signal,
    }


def _require_server(server_id: str) -> ServerConfig:
    server = config_manager.get_server(server_id)
    if server is None:
        raise NotFoundError(f"Server not found: {server_id}")
    return server


def _connect(credentials: SSHCredentials) -> ConnectResult:
    session_id = session_manager.create_session(credentials)
    host, port, username = credentials.target
    return {
        "session_id": session_id,
        "host": host,
        "port": port,
        "username": username,
        "message": f"Connected to {username}@{host}:{port}",
    }


def _exec(session_id: str, command: str, timeout: float | None, encoding: str) -> CommandOutput:
    result = _executor(session_id).execute(command, timeout=timeout, encoding=encoding)
    return _command_output(command, result)


def _exec_batch(
    session_id: str,
    commands: list[str],
    stop_on_error: bool,
    timeout: float | None,
    encoding: str,
) -> BatchResult:
    results = _executor(session_id).execute_sequence(
        commands, timeout=timeout, encoding=encoding, stop_on_error=stop_on_error
    )
    outputs = [_command_output(cmd, res) for cmd, res in zip(commands, results)]
    return {
        "results": outputs,
        "count": len(outputs),
        "all_succeeded": len(outputs) == len(commands) and all(r.ok for r in results),
    }


def _exec_with_input(
    session_id: str, command: str, input_data: str, timeout: float | None, encoding: str
) -> CommandOutput:
    result = _executor(session_id).execute_with_input(
        command, input_data, timeout=timeout, encoding=encoding
    )
    return _command_output(command, result)


def _sudo_exec(
    session_id: str,
    command: str,
    sudo_password: str | None,
    timeout: float | None,
    encoding: str,
) -> CommandOutput:
    result = _executor(session_id).execute_sudo(
        command, sudo_password=sudo_password, timeout=timeout, encoding=encoding
    )
    return _command_output(command, result)


def _tester() -> ConnectionTester:
    return ConnectionTester(timeout=config_manager.settings.connection_timeout)


# ---------------------------------
# Connection tools
# ---------------------------------


@mcp.tool(
    name="ssh_connect",
    description=(
        "Open an SSH session to a host, or reuse the connected session for the same host, port and username.\n\n"
        "Parameters:\n"
        "- host (string), username (string), port (number, default 22)\n"
        "- password (string, optional) or private_key (string, optional: path to a key file or the key itself)\n"
        "- passphrase (string, optional): passphrase for an encrypted private key\n"
        "Returns: { session_id, host, port, username, message }.\n\n"
        "Errors: authentication failure, connection failure, or the maximum session limit being reached.\n\n"
        "Important: Pass the returned session_id to every command and file tool; close it with 'ssh_disconnect'."
    ),
)
@weave.op()
async def ssh_connect(
    host: Annotated[str, "Hostname or IP address of the SSH server"],
    username: Annotated[str, "Login user"],
    port: Annotated[int, "SSH port"] = DEFAULT_PORT,
    password: Annotated[str | None, "Password for password authentication"] = None,
    private_key: Annotated[str | None, "Private key path or key content"] = None,
    passphrase: Annotated[str | None, "Passphrase for an encrypted private key"] = None,
) -> ConnectResult:
    credentials = SSHCredentials(
        host=host,
        username=username,
        port=port,
        password=password,
        private_key=private_key,
        passphrase=passphrase,
        connect_timeout=config_manager.settings.connection_timeout,
    )
    return await asyncio.to_thread(_connect, credentials)


@mcp.tool(
    name="ssh_disconnect",
    description=(
        "Close an SSH session and release its connection.\n\n"
        "Parameters:\n"
        "- session_id (string): Id returned by 'ssh_connect'.\n"
        "Returns: { status: 'closed', message }.\n\n"
        "Errors: Raises if the session id is unknown."
    ),
)
@weave.op()
async def ssh_disconnect(session_id: Annotated[str, "Session to close"]) -> StatusResult:
    await asyncio.to_thread(session_manager.close_session, session_id)
    return {"status": "closed", "message": f"Session {session_id} closed"}


@mcp.tool(
    name="ssh_list_sessions",
    description=(
        "List connected SSH sessions.\n\n"
        "Returns: { sessions: [{ session_id, host, port, username, connected, created_at, last_activity, "
        "command_count, uptime }], count }. Timestamps are epoch seconds; uptime is in seconds."
    ),
)
@weave.op()
async def ssh_list_sessions() -> SessionListResult:
    sessions = [s.to_dict() for s in session_manager.list_sessions()]
    return {"sessions": sessions, "count": len(sessions)}


@mcp.tool(
    name="ssh_session_info",
    description=(
        "Describe one SSH session.\n\n"
        "Parameters:\n"
        "- session_id (string)\n"
        "Returns: { session_id, host, port, username, connected, created_at, last_activity, command_count, uptime }.\n\n"
        "Errors: Raises if the session id is unknown or disconnected."
    ),
)
@weave.op()
async def ssh_session_info(session_id: Annotated[str, "Session to describe"]) -> SessionInfo:
    return session_manager.get_session_info(session_id).to_dict()


# ---------------------------------
# Command tools
# ---------------------------------


@mcp.tool(
    name="ssh_exec",
    description=(
        "Execute a shell command on an SSH session and return its output.\n\n"
        "Parameters:\n"
        "- session_id (string)\n"
        "- command (string): Shell command to execute remotely.\n"
        "- timeout (number, optional): Seconds to wait before giving up (default from settings).\n"
        "- encoding (string, default 'utf-8'): Codec used to decode the output.\n"
        "Returns: { command, stdout, stderr, exit_code, signal }. exit_code is null when the process was killed.\n\n"
        "Errors: timeout, unknown or disconnected session, channel failure. A non-zero exit code is NOT an error."
    ),
)
@weave.op()
async def ssh_exec(
    session_id: Annotated[str, "Session to run on"],
    command: Annotated[str, "Shell command to execute remotely"],
    timeout: Annotated[float | None, "Timeout in seconds"] = None,
    encoding: Annotated[str, "Output encoding"] = "utf-8",
) -> CommandOutput:
    return await asyncio.to_thread(_exec, session_id, command, timeout, encoding)


@mcp.tool(
    name="ssh_exec_batch",
    description=(
        "Execute several commands in order on one SSH session.\n\n"
        "Parameters:\n"
        "- session_id (string)\n"
        "- commands (string[]): Commands to run one after another.\n"
        "- stop_on_error (boolean, default false): Stop after the first non-zero exit or failure.\n"
        "- timeout (number, optional): Per-command timeout in seconds.\n"
        "- encoding (string, default 'utf-8')\n"
        "Returns: { results: [{ command, stdout, stderr, exit_code, signal }], count, all_succeeded }. "
        "A command that could not run is reported with exit_code -1 and the error in stderr."
    ),
)
@weave.op()
async def ssh_exec_batch(
    session_id: Annotated[str, "Session to run on"],
    commands: Annotated[list[str], "Commands to execute in order"],
    stop_on_error: Annotated[bool, "Stop after the first failing command"] = False,
    timeout: Annotated[float | None, "Per-command timeout in seconds"] = None,
    encoding: Annotated[str, "Output encoding"] = "utf-8",
) -> BatchResult:
    return await asyncio.to_thread(_exec_batch, session_id, commands, stop_on_error, timeout, encoding)


@mcp.tool(
    name="ssh_exec_with_input",
    description=(
        "Execute a command and feed text to its standard input, then close stdin.\n\n"
        "Parameters:\n"
        "- session_id (string), command (string)\n"
        "- input (string): Data written to the command's stdin.\n"
        "- timeout (number, optional), encoding (string, default 'utf-8')\n"
        "Returns: { command, stdout, stderr, exit_code, signal }."
    ),
)
@weave.op()
async def ssh_exec_with_input(
    session_id: Annotated[str, "Session to run on"],
    command: Annotated[str, "Shell command to execute remotely"],
    input: Annotated[str, "Data to send to stdin"],
    timeout: Annotated[float | None, "Timeout in seconds"] = None,
    encoding: Annotated[str, "Input/output encoding"] = "utf-8",
) -> CommandOutput:
    return await asyncio.to_thread(_exec_with_input, session_id, command, input, timeout, encoding)


@mcp.tool(
    name="ssh_sudo_exec",
    description=(
        "Execute a command with sudo on an SSH session.\n\n"
        "Parameters:\n"
        "- session_id (string), command (string): Command to run (without the 'sudo' prefix).\n"
        "- sudo_password (string, optional): Password for sudo. Omit when sudo is passwordless.\n"
        "- timeout (number, optional), encoding (string, default 'utf-8')\n"
        "Returns: { command, stdout, stderr, exit_code, signal }. Password prompts are removed from the output "
        "and the password never appears in it."
    ),
)
@weave.op()
async def ssh_sudo_exec(
    session_id: Annotated[str, "Session to run on"],
    command: Annotated[str, "Command to run with sudo"],
    sudo_password: Annotated[str | None, "sudo password"] = None,
    timeout: Annotated[float | None, "Timeout in seconds"] = None,
    encoding: Annotated[str, "Output encoding"] = "utf-8",
) -> CommandOutput:
    return await asyncio.to_thread(_sudo_exec, session_id, command, sudo_password, timeout, encoding)


# ---------------------------------
# Configured server tools
# ---------------------------------


@mcp.tool(
    name="ssh_list_servers",
    description=(
        "List servers from the configuration (YAML file, environment variables and command line).\n\n"
        "Parameters:\n"
        "- tag (string, optional): Only return servers carrying this tag (case-insensitive).\n"
        "Returns: { servers: [{ id, name, host, port, username, description, tags, auth_method }], count }. "
        "Passwords and key passphrases are never returned."
    ),
)
@weave.op()
async def ssh_list_servers(tag: Annotated[str | None, "Tag filter"] = None) -> ServerListResult:
    servers = config_manager.server_info_list(tag)
    return {"servers": servers, "count": len(servers)}


@mcp.tool(
    name="ssh_get_server",
    description=(
        "Describe one configured server.\n\n"
        "Parameters:\n"
        "- server_id (string)\n"
        "Returns: { id, name, host, port, username, description, tags, auth_method }.\n\n"
        "Errors: Raises if the server id is unknown."
    ),
)
@weave.op()
async def ssh_get_server(server_id: Annotated[str, "Configured server id"]) -> dict[str, object]:
    return _require_server(server_id).public_info()


@mcp.tool(
    name="ssh_test_connection",
    description=(
        "Check that a configured server accepts SSH authentication and offers SFTP, without opening a session.\n\n"
        "Parameters:\n"
        "- server_id (string)\n"
        "Returns: { server_id, server_name, host, connected, checked_at, latency_ms, error, "
        "capabilities: { ssh, sftp } }."
    ),
)
@weave.op()
async def ssh_test_connection(server_id: Annotated[str, "Configured server id"]) -> ConnectionStatusResult:
    server = _require_server(server_id)
    status = await asyncio.to_thread(_tester().test_connection, server)
    return status.to_dict()


@mcp.tool(
    name="ssh_test_all_connections",
    description=(
        "Test SSH/SFTP connectivity of every configured server.\n\n"
        "Parameters:\n"
        "- parallel (boolean, default false): Probe servers concurrently.\n"
        "Returns: { results: [...], total, connected, failed }."
    ),
)
@weave.op()
async def ssh_test_all_connections(
    parallel: Annotated[bool, "Probe servers concurrently"] = False,
) -> ConnectionReport:
    servers = config_manager.list_servers()
    statuses = await asyncio.to_thread(_tester().test_all, servers, parallel=parallel)
    connected = sum(1 for s in statuses if s.connected)
    return {
        "results": [s.to_dict() for s in statuses],
        "total": len(statuses),
        "connected": connected,
        "failed": len(statuses) - connected,
    }


@mcp.tool(
    name="ssh_ping",
    description=(
        "Check if a host's SSH port is reachable (simple TCP connect) and measure approximate latency.\n\n"
        "Parameters:\n"
        "- host (string): Hostname, IP address, or the id of a configured server.\n"
        "- port (number, optional): Defaults to the configured server's port, otherwise 22.\n"
        "Returns: { host, port, reachable, latency_ms, error }."
    ),
)
@weave.op()
async def ssh_ping(
    host: Annotated[str, "Host or configured server id"],
    port: Annotated[int | None, "TCP port"] = None,
) -> PingResult:
    server = config_manager.get_server(host)
    if server is not None:
        host, port = server.host, port or server.port
    return await asyncio.to_thread(_tester().ping, host, port or DEFAULT_PORT)


@mcp.tool(
    name="ssh_connect_by_id",
    description=(
        "Open (or reuse) an SSH session using a configured server's credentials.\n\n"
        "Parameters:\n"
        "- server_id (string)\n"
        "- password (string, optional): Use this password instead of the configured one.\n"
        "Returns: { session_id, host, port, username, message }."
    ),
)
@weave.op()
async def ssh_connect_by_id(
    server_id: Annotated[str, "Configured server id"],
    password: Annotated[str | None, "Password override"] = None,
) -> ConnectResult:
    server = _require_server(server_id)
    credentials = config_manager.get_credentials(server_id, password_override=password)
    result = await asyncio.to_thread(_connect, credentials)
    result["message"] = f"Connected to {server.name} ({server.host})"
    return result
