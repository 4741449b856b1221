"""SSH session registry - lifecycle, admission control and idle reclamation.

Philosophy:
- One live session per (host, port, username); repeat requests reuse it
- A hard ceiling on concurrent sessions, including ones still connecting
- Network I/O never happens while the registry lock is held
- A background thread closes sessions that stay idle too long

Public API:
    SessionManager: Registry of live sessions keyed by opaque id
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from typing import Any

from ssh_mcp.config import SSHCredentials

from .errors import NotConnectedError, NotFoundError, ResourceExhaustedError, TransportError
from .models import Session, SessionSummary
from .transport import open_client
from .utils.masking import mask_value

logger = logging.getLogger(__name__)

Target = tuple[str, int, str]


class SessionManager:
    """Registry of live SSH sessions.

    Example:
        >>> manager = SessionManager(session_timeout=1800, max_sessions=100)
        >>> session_id = manager.create_session(SSHCredentials("10.0.0.1", "deploy", password="..."))
        >>> session = manager.get_session(session_id)
        >>> manager.close_session(session_id)

    Args:
        session_timeout: Idle seconds after which a session is reclaimed.
        max_sessions: Maximum number of concurrent sessions.
        cleanup_interval: Seconds between idle sweeps.
        connector: Callable opening an authenticated client for credentials.
        start_cleanup: Start the background sweep thread immediately.
    """

    def __init__(
        self,
        session_timeout: float = 30 * 60,
        max_sessions: int = 100,
        cleanup_interval: float = 5 * 60,
        connector: Callable[[SSHCredentials], Any] = open_client,
        start_cleanup: bool = True,
    ):
        if max_sessions <= 0:
            raise ValueError("max_sessions must be positive")
        if session_timeout <= 0:
            raise ValueError("session_timeout must be positive")
        if cleanup_interval <= 0:
            raise ValueError("cleanup_interval must be positive")

        self.session_timeout = session_timeout
        self.max_sessions = max_sessions
        self.cleanup_interval = cleanup_interval
        self._connector = connector

        self._sessions: dict[str, Session] = {}
        # Targets whose connection is in flight; each slot counts against the ceiling.
        self._connecting: dict[Target, threading.Event] = {}
        self._lock = threading.Lock()
        self._shutdown_event = threading.Event()
        self._cleanup_thread: threading.Thread | None = None
        if start_cleanup:
            self.start()

    # ------------------------------------------------------------------
    # Background reclamation
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the idle sweep thread (no-op if already running)."""
        if self._cleanup_thread is not None and self._cleanup_thread.is_alive():
            return
        self._shutdown_event.clear()
        self._cleanup_thread = threading.Thread(
            target=self._cleanup_loop, name="ssh-session-sweeper", daemon=True
        )
        self._cleanup_thread.start()

    def _cleanup_loop(self) -> None:
        while not self._shutdown_event.wait(self.cleanup_interval):
            try:
                self.cleanup_expired_sessions()
            except Exception:
                logger.exception("Idle session sweep failed")

    def cleanup_expired_sessions(self) -> int:
        """Close every session idle for longer than `session_timeout`.

        Returns:
            Number of sessions reclaimed.
        """
        now = time.time()
        with self._lock:
            candidates = [
                s.id for s in self._sessions.values() if now - s.last_activity > self.session_timeout
            ]

        reclaimed = 0
        for session_id in candidates:
            try:
                session = self._pop_if_idle(session_id, now)
                if session is None:
                    continue
                self._release(session)
                reclaimed += 1
            except Exception:
                logger.exception("Error cleaning up session %s", session_id)

        if reclaimed:
            logger.info("Cleaned up %d expired sessions", reclaimed)
        return reclaimed

    def _pop_if_idle(self, session_id: str, now: float) -> Session | None:
        # Re-checked under the lock: the session may have been used or closed
        # since the candidates were collected.
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or now - session.last_activity <= self.session_timeout:
                return None
            return self._sessions.pop(session_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_session(self, credentials: SSHCredentials) -> str:
        """Return the id of a connected session for the credentials' target.

        An existing connected session for the same (host, port, username) is
        reused. Otherwise a new connection is authenticated and its SFTP
        handle opened.

        Raises:
            ResourceExhaustedError: The session ceiling has been reached.
            AuthenticationError: Credentials were rejected.
            TransportError: Connecting or opening SFTP failed.
        """
        target = credentials.target
        while True:
            with self._lock:
                existing = self._find_by_target(target)
                if existing is not None and existing.connected:
                    existing.touch()
                    logger.debug("Reusing session %s", existing.id)
                    return existing.id

                pending = self._connecting.get(target)
                if pending is None:
                    if len(self._sessions) + len(self._connecting) >= self.max_sessions:
                        raise ResourceExhaustedError(
                            f"Maximum session limit ({self.max_sessions}) reached. "
                            "Please close some sessions."
                        )
                    pending = threading.Event()
                    self._connecting[target] = pending
                    break
            # Another caller is connecting to the same target; reuse its result.
            pending.wait()

        try:
            session = self._open_session(credentials)
            with self._lock:
                self._sessions[session.id] = session
        finally:
            with self._lock:
                del self._connecting[target]
            pending.set()

        logger.info(
            "Session created: %s (%s@%s:%s)",
            session.id,
            mask_value(session.username),
            mask_value(session.host),
            session.port,
        )
        return session.id

    def _open_session(self, credentials: SSHCredentials) -> Session:
        host, port, _ = credentials.target
        client = self._connector(credentials)
        try:
            sftp = client.open_sftp()
        except Exception as e:
            self._close_quietly(client, "SSH client")
            raise TransportError(f"Failed to initialize SFTP for {host}:{port}: {e}") from e

        return Session(
            id=str(uuid.uuid4()),
            credentials=credentials,
            client=client,
            sftp=sftp,
            connected=True,
        )

    def _find_by_target(self, target: Target) -> Session | None:
        for session in self._sessions.values():
            if session.target == target:
                return session
        return None

    def get_session(self, session_id: str) -> Session:
        """Return a connected session and extend its idle window.

        Raises:
            NotFoundError: Unknown session id.
            NotConnectedError: The session is no longer connected.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError(f"Session not found: {session_id}")
            if not session.connected:
                raise NotConnectedError(f"Session is not connected: {session_id}")
            # Refreshed under the lock so the sweeper cannot evict it in between.
            session.touch()
        return session

    def has_session(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def get_session_info(self, session_id: str) -> SessionSummary:
        return self.get_session(session_id).summary()

    def list_sessions(self) -> list[SessionSummary]:
        """Summaries of connected sessions."""
        with self._lock:
            sessions = list(self._sessions.values())
        return [s.summary() for s in sessions if s.connected]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close_session(self, session_id: str) -> None:
        """Release a session's handles and remove it from the registry.

        Raises:
            NotFoundError: Unknown session id.
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        self._release(session)
        logger.info("Session closed: %s", session_id)

    def close_all(self) -> None:
        with self._lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            try:
                self.close_session(session_id)
            except NotFoundError:
                # Closed concurrently (explicitly or by the sweeper).
                continue

    def shutdown(self) -> None:
        """Stop the sweep thread and close every session."""
        self._shutdown_event.set()
        if self._cleanup_thread is not None and self._cleanup_thread.is_alive():
            self._cleanup_thread.join(timeout=1.0)
        self.close_all()

    def _release(self, session: Session) -> None:
        session.connected = False
        sftp, session.sftp = session.sftp, None
        if sftp is not None:
            self._close_quietly(sftp, f"SFTP handle of session {session.id}")
        self._close_quietly(session.client, f"SSH client of session {session.id}")

    @staticmethod
    def _close_quietly(handle: Any, label: str) -> None:
        try:
            handle.close()
        except Exception as e:
            logger.warning("Error closing %s: %s", label, e)
