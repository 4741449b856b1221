"""SFTP file operations over a registered session.

`SFTPOperations` wraps the session's `paramiko.SFTPClient`. Single-entry
operations raise the typed errors from `errors`; recursive transfers collect
per-entry failures into a `TransferResult` instead of stopping.

Usage:
    ops = SFTPOperations(manager.get_session(session_id))
    listing = ops.list_directory("/tmp")
    ops.write_file("/tmp/hello.txt", "hi\n")
    result = ops.upload_directory("./build", "/srv/app")
"""

from __future__ import annotations

import base64
import binascii
import codecs
import errno
import logging
import os
import posixpath

import paramiko

from .errors import ConflictError, NotConnectedError, NotFoundError, SSHError, TransportError
from .models import DirectoryListing, FileInfo, Session, TransferResult

logger = logging.getLogger(__name__)

DEFAULT_DIR_MODE = 0o755
BINARY_ENCODINGS = ("base64", "hex")

# paramiko raises SSHException, not an OSError, when the connection drops.
SFTP_ERRORS = (OSError, paramiko.SSHException)


def _failure(action: str, path: str, exc: Exception) -> SSHError:
    """Translate an SFTP/OS error into the typed hierarchy."""
    if isinstance(exc, FileNotFoundError) or getattr(exc, "errno", None) == errno.ENOENT:
        return NotFoundError(f"Failed to {action} {path}: No such file")
    return TransportError(f"Failed to {action} {path}: {exc}")


def _codec(encoding: str) -> str:
    name = encoding.lower()
    if name in BINARY_ENCODINGS:
        return name
    try:
        codecs.lookup(encoding)
    except LookupError as e:
        raise ValueError(f"Unknown encoding: {encoding}") from e
    return encoding


def decode_content(data: bytes, encoding: str, path: str = "") -> str:
    """Render file bytes as text.

    "base64" and "hex" represent arbitrary bytes; any other name is a text
    codec and the data must be valid in it.
    """
    name = _codec(encoding)
    if name == "base64":
        return base64.b64encode(data).decode("ascii")
    if name == "hex":
        return data.hex()
    try:
        return data.decode(name)
    except (UnicodeDecodeError, LookupError) as e:
        raise ValueError(f"Cannot decode {path} as {encoding}: {e}") from e


def encode_content(content: str, encoding: str, path: str = "") -> bytes:
    """Inverse of `decode_content`."""
    name = _codec(encoding)
    try:
        if name == "base64":
            return base64.b64decode(content, validate=True)
        if name == "hex":
            return bytes.fromhex(content)
        return content.encode(name)
    except (binascii.Error, ValueError, LookupError) as e:
        raise ValueError(f"Cannot encode content for {path} as {encoding}: {e}") from e


class SFTPOperations:
    """File and directory operations on one session's SFTP handle."""

    def __init__(self, session: Session):
        self.session = session

    @property
    def sftp(self):
        sftp = self.session.sftp
        if sftp is None:
            raise NotConnectedError(f"SFTP client not initialized for session {self.session.id}")
        return sftp

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def stat(self, path: str) -> FileInfo:
        try:
            attrs = self.sftp.stat(path)
        except SFTP_ERRORS as e:
            raise _failure("stat", path, e) from e
        self.session.touch()
        return FileInfo.from_attrs(posixpath.basename(path.rstrip("/")) or path, attrs)

    def exists(self, path: str) -> bool:
        """Return True if `path` exists. Never raises."""
        try:
            self.stat(path)
        except SSHError:
            return False
        return True

    def list_directory(self, path: str) -> DirectoryListing:
        try:
            attrs_list = self.sftp.listdir_attr(path)
        except SFTP_ERRORS as e:
            raise _failure("list directory", path, e) from e
        entries = [
            FileInfo.from_attrs(attrs.filename, attrs, getattr(attrs, "longname", None))
            for attrs in attrs_list
        ]
        self.session.touch()
        return DirectoryListing(path=path, entries=entries)

    # ------------------------------------------------------------------
    # Directory and entry mutation
    # ------------------------------------------------------------------

    def mkdir(self, path: str, *, recursive: bool = False, mode: int = DEFAULT_DIR_MODE) -> None:
        """Create a directory.

        With `recursive`, every missing prefix of `path` is created and
        prefixes that already exist as directories are left alone, so the
        call is idempotent.
        """
        if not recursive:
            try:
                self.sftp.mkdir(path, mode)
            except SFTP_ERRORS as e:
                raise _failure("create directory", path, e) from e
            self.session.touch()
            return

        for prefix in self._prefixes(path):
            if self._is_directory(prefix):
                continue
            try:
                self.sftp.mkdir(prefix, mode)
            except SFTP_ERRORS as e:
                # Lost a race with another creator, or the server reports a
                # generic failure for an existing directory.
                if self._is_directory(prefix):
                    continue
                raise _failure("create directory", prefix, e) from e
        self.session.touch()

    @staticmethod
    def _prefixes(path: str) -> list[str]:
        parts = [p for p in path.split("/") if p]
        current = "/" if path.startswith("/") else ""
        prefixes = []
        for part in parts:
            current = posixpath.join(current, part) if current else part
            prefixes.append(current)
        return prefixes

    def _is_directory(self, path: str) -> bool:
        try:
            return self.stat(path).is_directory
        except SSHError:
            return False

    def unlink(self, path: str) -> None:
        try:
            self.sftp.remove(path)
        except SFTP_ERRORS as e:
            raise _failure("delete file", path, e) from e
        self.session.touch()

    def rmdir(self, path: str) -> None:
        try:
            self.sftp.rmdir(path)
        except SFTP_ERRORS as e:
            raise _failure("remove directory", path, e) from e
        self.session.touch()

    def rename(self, old_path: str, new_path: str) -> None:
        try:
            self.sftp.rename(old_path, new_path)
        except SFTP_ERRORS as e:
            raise _failure("rename", old_path, e) from e
        self.session.touch()

    def remove(self, path: str, *, recursive: bool = False) -> None:
        """Remove a file, an empty directory, or (with `recursive`) a whole tree.

        A symlink is removed itself; its target is left untouched.
        """
        try:
            attrs = self.sftp.lstat(path)
        except SFTP_ERRORS as e:
            raise _failure("stat", path, e) from e
        info = FileInfo.from_attrs(posixpath.basename(path.rstrip("/")) or path, attrs)
        if not info.is_directory:
            self.unlink(path)
        elif recursive:
            self._remove_tree(path)
        else:
            self.rmdir(path)

    def _remove_tree(self, path: str) -> None:
        listing = self.list_directory(path)
        for entry in listing.entries:
            if entry.filename in (".", ".."):
                continue
            entry_path = posixpath.join(path, entry.filename)
            # Symlinks to directories are unlinked, never followed.
            if entry.is_directory:
                self._remove_tree(entry_path)
            else:
                self.unlink(entry_path)
        self.rmdir(path)

    # ------------------------------------------------------------------
    # Whole-file I/O
    # ------------------------------------------------------------------

    def read_bytes(self, path: str) -> bytes:
        try:
            with self.sftp.open(path, "rb") as f:
                data = f.read()
        except SFTP_ERRORS as e:
            raise _failure("read", path, e) from e
        self.session.touch()
        return data

    def read_file(self, path: str, encoding: str = "utf-8") -> str:
        """Read `path` as text; "base64" or "hex" return arbitrary bytes encoded.

        Raises:
            ValueError: Unknown encoding, or content not valid in it.
        """
        _codec(encoding)
        return decode_content(self.read_bytes(path), encoding, path)

    def write_file(
        self,
        path: str,
        content: str | bytes,
        *,
        encoding: str = "utf-8",
        mode: int | None = None,
    ) -> int:
        """Write `content` to `path`, replacing any existing file.

        Returns:
            Number of bytes written.
        """
        data = encode_content(content, encoding, path) if isinstance(content, str) else content
        try:
            with self.sftp.open(path, "wb") as f:
                f.write(data)
            if mode is not None:
                self.sftp.chmod(path, mode)
        except SFTP_ERRORS as e:
            raise _failure("write", path, e) from e
        self.session.touch()
        return len(data)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def upload_file(
        self,
        local_path: str,
        remote_path: str,
        *,
        overwrite: bool = False,
        permissions: int | None = None,
    ) -> None:
        """Copy a local file to the remote host.

        Raises:
            ConflictError: The local file is missing, or the remote path
                exists and `overwrite` is false.
        """
        if not os.path.isfile(local_path):
            raise ConflictError(f"Local file not found: {local_path}")
        if not overwrite and self.exists(remote_path):
            raise ConflictError(f"Remote file already exists: {remote_path}")
        try:
            self.sftp.put(local_path, remote_path)
            if permissions is not None:
                self.sftp.chmod(remote_path, permissions)
        except SFTP_ERRORS as e:
            raise _failure("upload file to", remote_path, e) from e
        self.session.touch()
        logger.debug("Uploaded %s to %s on session %s", local_path, remote_path, self.session.id)

    def download_file(self, remote_path: str, local_path: str, *, overwrite: bool = False) -> None:
        """Copy a remote file to the local host, creating the local parent directory.

        Raises:
            ConflictError: The remote file is missing, or the local path
                exists and `overwrite` is false.
        """
        if not self.exists(remote_path):
            raise ConflictError(f"Remote file not found: {remote_path}")
        if not overwrite and os.path.exists(local_path):
            raise ConflictError(f"Local file already exists: {local_path}")
        parent = os.path.dirname(local_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        try:
            self.sftp.get(remote_path, local_path)
        except SFTP_ERRORS as e:
            raise _failure("download file", remote_path, e) from e
        self.session.touch()
        logger.debug("Downloaded %s to %s on session %s", remote_path, local_path, self.session.id)

    def upload_directory(
        self,
        local_dir: str,
        remote_dir: str,
        *,
        overwrite: bool = False,
        permissions: int | None = None,
    ) -> TransferResult:
        """Upload a local tree; paths in the result are remote paths."""
        if not os.path.isdir(local_dir):
            raise ConflictError(f"Local directory not found: {local_dir}")
        self.mkdir(remote_dir, recursive=True)

        result = TransferResult()
        with os.scandir(local_dir) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            remote_entry = posixpath.join(remote_dir, entry.name)
            try:
                if entry.is_dir(follow_symlinks=False):
                    result.merge(
                        self.upload_directory(
                            entry.path, remote_entry, overwrite=overwrite, permissions=permissions
                        )
                    )
                else:
                    self.upload_file(
                        entry.path, remote_entry, overwrite=overwrite, permissions=permissions
                    )
                    result.transferred.append(remote_entry)
            except (SSHError, OSError) as e:
                logger.warning("Upload of %s failed: %s", entry.path, e)
                result.record_failure(remote_entry, str(e))
        return result

    def download_directory(
        self, remote_dir: str, local_dir: str, *, overwrite: bool = False
    ) -> TransferResult:
        """Download a remote tree; paths in the result are local paths."""
        os.makedirs(local_dir, exist_ok=True)
        listing = self.list_directory(remote_dir)

        result = TransferResult()
        for entry in listing.entries:
            if entry.filename in (".", ".."):
                continue
            remote_entry = posixpath.join(remote_dir, entry.filename)
            local_entry = os.path.join(local_dir, entry.filename)
            try:
                if entry.is_directory:
                    result.merge(self.download_directory(remote_entry, local_entry, overwrite=overwrite))
                else:
                    self.download_file(remote_entry, local_entry, overwrite=overwrite)
                    result.transferred.append(local_entry)
            except (SSHError, OSError) as e:
                logger.warning("Download of %s failed: %s", remote_entry, e)
                result.record_failure(local_entry, str(e))
        return result
