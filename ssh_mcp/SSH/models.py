"""Core records for sessions, command results and SFTP metadata."""

from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from ssh_mcp.config import SSHCredentials

from .utils.filemode import (
    DIRECTORY,
    FILE,
    OTHER,
    SYMLINK,
    classify_mode,
    format_longname,
    timestamp_to_datetime,
)


@dataclass
class SessionSummary:
    session_id: str
    host: str
    port: int
    username: str
    connected: bool
    created_at: float
    last_activity: float
    command_count: int
    uptime: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(eq=False)
class Session:
    """A registered, authenticated connection and its SFTP companion.

    `client` is a `paramiko.SSHClient` and `sftp` a `paramiko.SFTPClient`.
    Both are owned by the session and released together by
    `SessionManager.close_session`; `sftp` is set exactly while `connected`
    is true.
    """

    id: str
    credentials: SSHCredentials
    client: Any
    sftp: Any | None = None
    connected: bool = False
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    command_count: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def host(self) -> str:
        return self.credentials.host

    @property
    def port(self) -> int:
        return self.credentials.target[1]

    @property
    def username(self) -> str:
        return self.credentials.username

    @property
    def target(self) -> tuple[str, int, str]:
        return self.credentials.target

    def touch(self) -> None:
        self.last_activity = time.time()

    def record_command(self) -> None:
        with self._lock:
            self.command_count += 1
            self.last_activity = time.time()

    def summary(self) -> SessionSummary:
        return SessionSummary(
            session_id=self.id,
            host=self.host,
            port=self.port,
            username=self.username,
            connected=self.connected,
            created_at=self.created_at,
            last_activity=self.last_activity,
            command_count=self.command_count,
            uptime=time.time() - self.created_at,
        )


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int | None
    signal: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FileInfo:
    filename: str
    longname: str
    is_directory: bool
    is_file: bool
    is_symlink: bool
    size: int
    permissions: int
    owner: int
    group: int
    access_time: datetime
    modify_time: datetime

    @property
    def type(self) -> str:
        if self.is_directory:
            return DIRECTORY
        if self.is_symlink:
            return SYMLINK
        if self.is_file:
            return FILE
        return OTHER

    @classmethod
    def from_attrs(cls, filename: str, attrs: Any, longname: str | None = None) -> "FileInfo":
        """Normalise a `paramiko.SFTPAttributes` from either stat or a listing.

        Missing numeric fields default to zero.
        """
        mode = attrs.st_mode or 0
        size = attrs.st_size or 0
        uid = attrs.st_uid or 0
        gid = attrs.st_gid or 0
        kind = classify_mode(mode)
        return cls(
            filename=filename,
            longname=longname or format_longname(filename, mode, size, uid, gid, attrs.st_mtime),
            is_directory=kind == DIRECTORY,
            is_file=kind == FILE,
            is_symlink=kind == SYMLINK,
            size=size,
            permissions=mode,
            owner=uid,
            group=gid,
            access_time=timestamp_to_datetime(attrs.st_atime),
            modify_time=timestamp_to_datetime(attrs.st_mtime),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.filename,
            "longname": self.longname,
            "type": self.type,
            "size": self.size,
            "permissions": format(self.permissions & 0o7777, "o"),
            "owner": self.owner,
            "group": self.group,
            "access_time": self.access_time.isoformat(),
            "modify_time": self.modify_time.isoformat(),
        }


@dataclass
class DirectoryListing:
    path: str
    entries: list[FileInfo]

    @property
    def count(self) -> int:
        return len(self.entries)


@dataclass
class TransferResult:
    """Outcome of a recursive transfer; one failed leaf never stops its siblings."""

    success: bool = True
    transferred: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    def record_failure(self, path: str, message: str) -> None:
        self.failed.append(path)
        self.errors[path] = message
        self.success = False

    def merge(self, other: "TransferResult") -> None:
        self.transferred.extend(other.transferred)
        self.failed.extend(other.failed)
        self.errors.update(other.errors)
        if not other.success:
            self.success = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
