"""Session-less connectivity probes for configured servers.

Public API:
    ConnectionStatus: Outcome of one SSH/SFTP capability probe
    ConnectionTester: Probe one server, all servers, or just a TCP port

Probes open a throw-away connection; nothing is registered with the
session manager. A failed probe is reported in the status, never raised.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ssh_mcp.config import DEFAULT_PORT, ServerConfig, SSHCredentials

from .errors import SSHError
from .transport import open_client
from .utils.network import tcp_reachable

logger = logging.getLogger(__name__)


@dataclass
class ConnectionStatus:
    """Result of probing one server.

    Attributes:
        server_id: Configured server id
        server_name: Configured display name
        host: Target host
        connected: Whether SSH authentication succeeded
        checked_at: When the probe finished (UTC)
        latency_ms: Time to an authenticated connection, if any
        error: Failure message, if any
        capabilities: Which of "ssh" and "sftp" are usable
    """

    server_id: str
    server_name: str
    host: str
    connected: bool = False
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    latency_ms: float | None = None
    error: str | None = None
    capabilities: dict[str, bool] = field(default_factory=lambda: {"ssh": False, "sftp": False})

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_id": self.server_id,
            "server_name": self.server_name,
            "host": self.host,
            "connected": self.connected,
            "checked_at": self.checked_at.isoformat(),
            "latency_ms": self.latency_ms,
            "error": self.error,
            "capabilities": dict(self.capabilities),
        }


class ConnectionTester:
    """Probe SSH and SFTP availability of configured servers.

    Args:
        timeout: Connect/auth timeout per server (seconds).
        max_workers: Upper bound on parallel probes.
        connector: Callable opening an authenticated client for credentials.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        max_workers: int = 10,
        connector: Callable[[SSHCredentials], Any] = open_client,
    ):
        self.timeout = timeout
        self.max_workers = max_workers
        self._connector = connector

    def test_connection(self, server: ServerConfig) -> ConnectionStatus:
        """Authenticate against `server`, then check that SFTP opens."""
        status = ConnectionStatus(server_id=server.id, server_name=server.name, host=server.host)
        if server.auth_method == "none":
            status.error = "No password or private key provided"
            return status

        start = time.monotonic()
        try:
            client = self._connector(server.to_credentials(connect_timeout=self.timeout))
        except SSHError as e:
            status.error = str(e)
            status.checked_at = datetime.now(timezone.utc)
            return status

        try:
            status.connected = True
            status.capabilities["ssh"] = True
            status.latency_ms = round((time.monotonic() - start) * 1000.0, 2)
            try:
                sftp = client.open_sftp()
            except Exception as e:
                logger.debug("SFTP unavailable on %s: %s", server.id, e)
            else:
                status.capabilities["sftp"] = True
                sftp.close()
        finally:
            client.close()

        status.checked_at = datetime.now(timezone.utc)
        return status

    def test_all(self, servers: list[ServerConfig], *, parallel: bool = False) -> list[ConnectionStatus]:
        """Probe every server; results keep the order of `servers`."""
        if not servers:
            return []
        if not parallel:
            results = []
            for server in servers:
                logger.info("Testing connection: %s (%s)", server.name, server.id)
                status = self.test_connection(server)
                self._log_status(server, status)
                results.append(status)
            return results

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(servers))) as executor:
            results = list(executor.map(self.test_connection, servers))
        for server, status in zip(servers, results):
            self._log_status(server, status)
        return results

    @staticmethod
    def _log_status(server: ServerConfig, status: ConnectionStatus) -> None:
        if status.connected:
            logger.info("%s reachable (%sms)", server.name, status.latency_ms)
        else:
            logger.info("%s unreachable: %s", server.name, status.error)

    def ping(self, host: str, port: int = DEFAULT_PORT, timeout: float = 5.0) -> dict[str, Any]:
        """TCP reachability of `host:port` without authenticating."""
        reachable, latency_ms, reason = tcp_reachable(host, port, timeout=timeout)
        return {
            "host": host,
            "port": port,
            "reachable": reachable,
            "latency_ms": latency_ms,
            "error": reason,
        }
