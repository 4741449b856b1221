"""
Shared test fixtures for the SSH session MCP tests.

This module provides in-memory stand-ins for the paramiko objects the engines
talk to, so no test touches the network:
- FakeChannel: scripted exec channel (stdout/stderr chunks, exit status)
- FakeTransport / FakeClient: connection handles
- FakeSFTP: in-memory remote filesystem returning real SFTPAttributes
"""

from __future__ import annotations

import errno
import io
import posixpath
import stat
import threading
from collections import deque

import paramiko
import pytest

from ssh_mcp.config import SSHCredentials
from ssh_mcp.SSH.models import Session
from ssh_mcp.SSH.session_manager import SessionManager

FIXED_TIME = 1_700_000_000


# ============================================================================
# EXEC CHANNEL FAKES
# ============================================================================


class FakeChannel:
    """Exec channel that replays scripted output.

    Args:
        stdout: Chunks returned by successive `recv` calls.
        stderr: Chunks returned by successive `recv_stderr` calls.
        exit_status: Status reported once all output is drained.
        hang: Never report an exit status (until closed).
        error: Exception raised by `recv`.
        exec_error: Exception raised by `exec_command`.
        late_stdout: Chunks that land right after the first `recv_ready`
            check, together with the exit status.
        early_exit: Report the exit status while output is still buffered.
    """

    def __init__(
        self,
        stdout=(),
        stderr=(),
        exit_status=0,
        hang=False,
        error=None,
        exec_error=None,
        late_stdout=(),
        early_exit=False,
    ):
        self._stdout = deque(stdout)
        self._stderr = deque(stderr)
        self._late = deque(late_stdout)
        self.exit_status = exit_status
        self.hang = hang
        self.error = error
        self.exec_error = exec_error
        self.early_exit = early_exit
        self.command = None
        self.pty = False
        self.sent: list[bytes] = []
        self.eof_sent = False
        self.closed = False
        self._lock = threading.Lock()

    @property
    def eof_received(self):
        return not self.hang

    def get_pty(self):
        self.pty = True

    def exec_command(self, command):
        if self.exec_error is not None:
            raise self.exec_error
        self.command = command

    def recv_ready(self):
        if self.error is not None:
            return True
        with self._lock:
            ready = bool(self._stdout)
            if self._late:
                self._stdout.extend(self._late)
                self._late.clear()
                self.early_exit = True
            return ready

    def recv(self, nbytes):
        if self.error is not None:
            raise self.error
        with self._lock:
            return self._stdout.popleft() if self._stdout else b""

    def recv_stderr_ready(self):
        with self._lock:
            return bool(self._stderr)

    def recv_stderr(self, nbytes):
        with self._lock:
            return self._stderr.popleft() if self._stderr else b""

    def exit_status_ready(self):
        if self.hang:
            return False
        with self._lock:
            return self.early_exit or (not self._stdout and not self._stderr and not self._late)

    def recv_exit_status(self):
        return self.exit_status

    def sendall(self, data):
        self.sent.append(bytes(data))

    def shutdown_write(self):
        self.eof_sent = True

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, channels=None, active=True):
        self.channels = deque(channels or [])
        self.opened: list[FakeChannel] = []
        self.active = active

    def is_active(self):
        return self.active

    def open_session(self):
        channel = self.channels.popleft() if self.channels else FakeChannel()
        self.opened.append(channel)
        return channel


class FakeClient:
    def __init__(self, transport=None, sftp=None, sftp_error=None):
        self.transport = transport or FakeTransport()
        self.sftp = sftp if sftp is not None else FakeSFTP()
        self.sftp_error = sftp_error
        self.closed = False

    def get_transport(self):
        return self.transport

    def open_sftp(self):
        if self.sftp_error is not None:
            raise self.sftp_error
        return self.sftp

    def close(self):
        self.closed = True


# ============================================================================
# SFTP FAKE
# ============================================================================


def _missing(path):
    return IOError(errno.ENOENT, "No such file", path)


class _FakeRemoteFile:
    def __init__(self, sftp, path, mode):
        self._sftp = sftp
        self._path = path
        self._writing = "w" in mode
        self._buffer = io.BytesIO(b"" if self._writing else sftp.files[path])

    def read(self, size=-1):
        return self._buffer.read(size)

    def write(self, data):
        self._buffer.write(data)

    def close(self):
        if self._writing:
            self._sftp.files[self._path] = self._buffer.getvalue()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSFTP:
    """In-memory remote filesystem with the SFTPClient methods the engine uses.

    Relative paths resolve against "/". Symlinks are followed by `stat` and
    reported as links by `lstat` and `listdir_attr`.
    """

    def __init__(self):
        self.dirs: set[str] = {"/"}
        self.files: dict[str, bytes] = {}
        self.links: dict[str, str] = {}
        self.modes: dict[str, int] = {}
        self.closed = False
        self.close_error = None
        self.dropped = False

    def drop_connection(self):
        """Make every later call fail the way paramiko does on a lost connection."""
        self.dropped = True

    def _check_connection(self):
        if self.dropped:
            raise paramiko.SSHException("Server connection dropped: ")

    @staticmethod
    def _norm(path):
        return posixpath.normpath(posixpath.join("/", path))

    def _parent_exists(self, path):
        return posixpath.dirname(path) in self.dirs

    def _children(self, path):
        names = set()
        for entry in (*self.dirs, *self.files, *self.links):
            if entry != path and posixpath.dirname(entry) == path:
                names.add(posixpath.basename(entry))
        return sorted(names)

    def _attrs(self, path, follow=True):
        if path in self.links:
            if not follow:
                return self._make_attrs(path, stat.S_IFLNK | 0o777, 0)
            path = self.links[path]
        if path in self.dirs:
            return self._make_attrs(path, stat.S_IFDIR | self.modes.get(path, 0o755), 4096)
        if path in self.files:
            mode = stat.S_IFREG | self.modes.get(path, 0o644)
            return self._make_attrs(path, mode, len(self.files[path]))
        raise _missing(path)

    @staticmethod
    def _make_attrs(path, mode, size):
        attrs = paramiko.SFTPAttributes()
        attrs.filename = posixpath.basename(path)
        attrs.st_mode = mode
        attrs.st_size = size
        attrs.st_uid = 1000
        attrs.st_gid = 1000
        attrs.st_atime = FIXED_TIME
        attrs.st_mtime = FIXED_TIME
        return attrs

    # --- helpers for tests ---

    def add_dir(self, path):
        path = self._norm(path)
        while path not in self.dirs:
            self.dirs.add(path)
            path = posixpath.dirname(path)

    def add_file(self, path, data=b""):
        path = self._norm(path)
        self.add_dir(posixpath.dirname(path))
        self.files[path] = data

    def add_link(self, path, target):
        path = self._norm(path)
        self.add_dir(posixpath.dirname(path))
        self.links[path] = self._norm(target)

    # --- SFTPClient API ---

    def stat(self, path):
        self._check_connection()
        return self._attrs(self._norm(path))

    def lstat(self, path):
        self._check_connection()
        return self._attrs(self._norm(path), follow=False)

    def listdir_attr(self, path="."):
        self._check_connection()
        path = self._norm(path)
        if path not in self.dirs:
            raise _missing(path)
        return [self._attrs(posixpath.join(path, name), follow=False) for name in self._children(path)]

    def mkdir(self, path, mode=0o777):
        self._check_connection()
        path = self._norm(path)
        if path in self.dirs or path in self.files or path in self.links:
            raise IOError("Failure")
        if not self._parent_exists(path):
            raise _missing(path)
        self.dirs.add(path)
        self.modes[path] = mode

    def rmdir(self, path):
        self._check_connection()
        path = self._norm(path)
        if path not in self.dirs:
            raise _missing(path)
        if self._children(path):
            raise IOError("Failure")
        self.dirs.remove(path)

    def remove(self, path):
        self._check_connection()
        path = self._norm(path)
        if path in self.links:
            del self.links[path]
        elif path in self.files:
            del self.files[path]
        elif path in self.dirs:
            raise IOError("Failure")
        else:
            raise _missing(path)

    def rename(self, oldpath, newpath):
        self._check_connection()
        old, new = self._norm(oldpath), self._norm(newpath)
        if old in self.files:
            self.files[new] = self.files.pop(old)
        elif old in self.dirs:
            prefix = old + "/"
            self.dirs = {new + d[len(old):] if d == old or d.startswith(prefix) else d for d in self.dirs}
            self.files = {
                (new + f[len(old):] if f.startswith(prefix) else f): data for f, data in self.files.items()
            }
        else:
            raise _missing(old)

    def open(self, path, mode="r"):
        self._check_connection()
        path = self._norm(path)
        if "w" in mode:
            if not self._parent_exists(path):
                raise _missing(path)
        elif path not in self.files:
            raise _missing(path)
        return _FakeRemoteFile(self, path, mode)

    def chmod(self, path, mode):
        self._check_connection()
        path = self._norm(path)
        self._attrs(path)
        self.modes[path] = mode

    def put(self, localpath, remotepath):
        self._check_connection()
        remotepath = self._norm(remotepath)
        if not self._parent_exists(remotepath):
            raise _missing(remotepath)
        with open(localpath, "rb") as f:
            self.files[remotepath] = f.read()
        return self._attrs(remotepath)

    def get(self, remotepath, localpath):
        self._check_connection()
        remotepath = self._norm(remotepath)
        if remotepath not in self.files:
            raise _missing(remotepath)
        with open(localpath, "wb") as f:
            f.write(self.files[remotepath])

    def close(self):
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def credentials():
    return SSHCredentials(host="10.0.0.1", username="deploy", password="pw")


@pytest.fixture
def fake_sftp():
    return FakeSFTP()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_client(fake_transport, fake_sftp):
    return FakeClient(transport=fake_transport, sftp=fake_sftp)


@pytest.fixture
def session(credentials, fake_client, fake_sftp):
    """A connected session backed by the fakes."""
    return Session(
        id="session-1",
        credentials=credentials,
        client=fake_client,
        sftp=fake_sftp,
        connected=True,
    )


@pytest.fixture
def connector():
    """Connector recording every call and handing out fresh fake clients."""

    class Connector:
        def __init__(self):
            self.calls: list[SSHCredentials] = []
            self.clients: list[FakeClient] = []
            self.error = None
            self.delay = 0.0
            self.sftp_error = None
            self._lock = threading.Lock()

        def __call__(self, creds):
            if self.delay:
                threading.Event().wait(self.delay)
            with self._lock:
                self.calls.append(creds)
            if self.error is not None:
                raise self.error
            client = FakeClient(sftp_error=self.sftp_error)
            with self._lock:
                self.clients.append(client)
            return client

    return Connector()


@pytest.fixture
def manager(connector):
    mgr = SessionManager(session_timeout=60, max_sessions=5, cleanup_interval=60, connector=connector, start_cleanup=False)
    yield mgr
    mgr.shutdown()
