"""MCP tools for SFTP file operations on SSH sessions.

Tools provided:
- Transfers: `sftp_upload`, `sftp_download`, `sftp_upload_dir`, `sftp_download_dir`
- Remote filesystem: `sftp_ls`, `sftp_mkdir`, `sftp_rm`, `sftp_rename`, `sftp_stat`
- Whole-file I/O: `sftp_read`, `sftp_write`

Permissions are passed as octal strings (e.g. "644") and reported the same way.
"""

# ruff: noqa: I001
import asyncio
from typing import Annotated

import weave

from ssh_mcp.server import mcp, session_manager

from .sftp_operations import DEFAULT_DIR_MODE, SFTPOperations, decode_content
from .utils.types import FileInfoResult, ListingResult, ReadResult, StatusResult, TransferSummary


def _ops(session_id: str) -> SFTPOperations:
    return SFTPOperations(session_manager.get_session(session_id))


def _parse_mode(value: str | None) -> int | None:
    """Parse an octal permission string such as "644" or "0o755"."""
    if value is None or value == "":
        return None
    try:
        return int(value, 8)
    except ValueError as e:
        raise ValueError(f"Invalid octal permissions: {value!r}") from e


def _upload(session_id: str, local_path: str, remote_path: str, overwrite: bool, permissions: str | None) -> StatusResult:
    _ops(session_id).upload_file(
        local_path, remote_path, overwrite=overwrite, permissions=_parse_mode(permissions)
    )
    return {"status": "uploaded", "message": f"Uploaded {local_path} to {remote_path}"}


def _download(session_id: str, remote_path: str, local_path: str, overwrite: bool) -> StatusResult:
    _ops(session_id).download_file(remote_path, local_path, overwrite=overwrite)
    return {"status": "downloaded", "message": f"Downloaded {remote_path} to {local_path}"}


def _upload_dir(session_id: str, local_dir: str, remote_dir: str, overwrite: bool) -> TransferSummary:
    return _ops(session_id).upload_directory(local_dir, remote_dir, overwrite=overwrite).to_dict()


def _download_dir(session_id: str, remote_dir: str, local_dir: str, overwrite: bool) -> TransferSummary:
    return _ops(session_id).download_directory(remote_dir, local_dir, overwrite=overwrite).to_dict()


def _ls(session_id: str, path: str) -> ListingResult:
    listing = _ops(session_id).list_directory(path)
    return {
        "path": listing.path,
        "entries": [entry.to_dict() for entry in listing.entries],
        "count": listing.count,
    }


def _mkdir(session_id: str, path: str, recursive: bool, mode: str | None) -> StatusResult:
    parsed = _parse_mode(mode)
    _ops(session_id).mkdir(path, recursive=recursive, mode=DEFAULT_DIR_MODE if parsed is None else parsed)
    return {"status": "created", "message": f"Directory created: {path}"}


def _rm(session_id: str, path: str, recursive: bool) -> StatusResult:
    _ops(session_id).remove(path, recursive=recursive)
    return {"status": "removed", "message": f"Removed: {path}"}


def _rename(session_id: str, old_path: str, new_path: str) -> StatusResult:
    _ops(session_id).rename(old_path, new_path)
    return {"status": "renamed", "message": f"Renamed {old_path} to {new_path}"}


def _stat(session_id: str, path: str) -> FileInfoResult:
    return _ops(session_id).stat(path).to_dict()


def _read(session_id: str, path: str, encoding: str) -> ReadResult:
    ops = _ops(session_id)
    data = ops.read_bytes(path)
    content = decode_content(data, encoding, path)
    return {"path": path, "content": content, "size": len(data), "encoding": encoding}


def _write(session_id: str, path: str, content: str, encoding: str, mode: str | None) -> StatusResult:
    written = _ops(session_id).write_file(path, content, encoding=encoding, mode=_parse_mode(mode))
    return {"status": "written", "message": f"Wrote {written} bytes to {path}"}


# ---------------------------------
# Transfers
# ---------------------------------


@mcp.tool(
    name="sftp_upload",
    description=(
        "Upload a local file to the remote host over SFTP.\n\n"
        "Parameters:\n"
        "- session_id (string), local_path (string), remote_path (string)\n"
        "- overwrite (boolean, default false): Replace an existing remote file.\n"
        "- permissions (string, optional): Octal mode applied after upload, e.g. '644'.\n"
        "Returns: { status: 'uploaded', message }.\n\n"
        "Errors: the local file is missing, or the remote file exists and overwrite is false."
    ),
)
@weave.op()
async def sftp_upload(
    session_id: Annotated[str, "Session to use"],
    local_path: Annotated[str, "Local source file"],
    remote_path: Annotated[str, "Remote destination path"],
    overwrite: Annotated[bool, "Replace an existing remote file"] = False,
    permissions: Annotated[str | None, "Octal permissions, e.g. '644'"] = None,
) -> StatusResult:
    return await asyncio.to_thread(_upload, session_id, local_path, remote_path, overwrite, permissions)


@mcp.tool(
    name="sftp_download",
    description=(
        "Download a remote file to the local host over SFTP. The local parent directory is created if needed.\n\n"
        "Parameters:\n"
        "- session_id (string), remote_path (string), local_path (string)\n"
        "- overwrite (boolean, default false): Replace an existing local file.\n"
        "Returns: { status: 'downloaded', message }."
    ),
)
@weave.op()
async def sftp_download(
    session_id: Annotated[str, "Session to use"],
    remote_path: Annotated[str, "Remote source file"],
    local_path: Annotated[str, "Local destination path"],
    overwrite: Annotated[bool, "Replace an existing local file"] = False,
) -> StatusResult:
    return await asyncio.to_thread(_download, session_id, remote_path, local_path, overwrite)


@mcp.tool(
    name="sftp_upload_dir",
    description=(
        "Upload a local directory tree to the remote host. A failing entry does not stop the others.\n\n"
        "Parameters:\n"
        "- session_id (string), local_dir (string), remote_dir (string), overwrite (boolean, default false)\n"
        "Returns: { success, transferred: string[], failed: string[], errors: { path: message } } "
        "with remote paths."
    ),
)
@weave.op()
async def sftp_upload_dir(
    session_id: Annotated[str, "Session to use"],
    local_dir: Annotated[str, "Local source directory"],
    remote_dir: Annotated[str, "Remote destination directory"],
    overwrite: Annotated[bool, "Replace existing remote files"] = False,
) -> TransferSummary:
    return await asyncio.to_thread(_upload_dir, session_id, local_dir, remote_dir, overwrite)


@mcp.tool(
    name="sftp_download_dir",
    description=(
        "Download a remote directory tree to the local host. A failing entry does not stop the others.\n\n"
        "Parameters:\n"
        "- session_id (string), remote_dir (string), local_dir (string), overwrite (boolean, default false)\n"
        "Returns: { success, transferred: string[], failed: string[], errors: { path: message } } "
        "with local paths."
    ),
)
@weave.op()
async def sftp_download_dir(
    session_id: Annotated[str, "Session to use"],
    remote_dir: Annotated[str, "Remote source directory"],
    local_dir: Annotated[str, "Local destination directory"],
    overwrite: Annotated[bool, "Replace existing local files"] = False,
) -> TransferSummary:
    return await asyncio.to_thread(_download_dir, session_id, remote_dir, local_dir, overwrite)


# ---------------------------------
# Remote filesystem
# ---------------------------------


@mcp.tool(
    name="sftp_ls",
    description=(
        "List a remote directory.\n\n"
        "Parameters:\n"
        "- session_id (string), path (string, default '.')\n"
        "Returns: { path, entries: [{ name, longname, type: 'file'|'directory'|'symlink'|'other', size, "
        "permissions, owner, group, access_time, modify_time }], count }."
    ),
)
@weave.op()
async def sftp_ls(
    session_id: Annotated[str, "Session to use"],
    path: Annotated[str, "Remote directory"] = ".",
) -> ListingResult:
    return await asyncio.to_thread(_ls, session_id, path)


@mcp.tool(
    name="sftp_mkdir",
    description=(
        "Create a remote directory.\n\n"
        "Parameters:\n"
        "- session_id (string), path (string)\n"
        "- recursive (boolean, default false): Create missing parents; existing directories are accepted.\n"
        "- mode (string, optional): Octal mode, default '755'.\n"
        "Returns: { status: 'created', message }."
    ),
)
@weave.op()
async def sftp_mkdir(
    session_id: Annotated[str, "Session to use"],
    path: Annotated[str, "Remote directory to create"],
    recursive: Annotated[bool, "Create missing parents"] = False,
    mode: Annotated[str | None, "Octal mode, e.g. '755'"] = None,
) -> StatusResult:
    return await asyncio.to_thread(_mkdir, session_id, path, recursive, mode)


@mcp.tool(
    name="sftp_rm",
    description=(
        "Remove a remote file or directory.\n\n"
        "Parameters:\n"
        "- session_id (string), path (string)\n"
        "- recursive (boolean, default false): Remove a directory and everything below it.\n"
        "Returns: { status: 'removed', message }.\n\n"
        "Errors: a non-empty directory without recursive, or a missing path."
    ),
)
@weave.op()
async def sftp_rm(
    session_id: Annotated[str, "Session to use"],
    path: Annotated[str, "Remote path to remove"],
    recursive: Annotated[bool, "Remove directories recursively"] = False,
) -> StatusResult:
    return await asyncio.to_thread(_rm, session_id, path, recursive)


@mcp.tool(
    name="sftp_rename",
    description=(
        "Rename or move a remote file or directory.\n\n"
        "Parameters:\n"
        "- session_id (string), old_path (string), new_path (string)\n"
        "Returns: { status: 'renamed', message }."
    ),
)
@weave.op()
async def sftp_rename(
    session_id: Annotated[str, "Session to use"],
    old_path: Annotated[str, "Existing remote path"],
    new_path: Annotated[str, "New remote path"],
) -> StatusResult:
    return await asyncio.to_thread(_rename, session_id, old_path, new_path)


@mcp.tool(
    name="sftp_stat",
    description=(
        "Get metadata for a remote path.\n\n"
        "Parameters:\n"
        "- session_id (string), path (string)\n"
        "Returns: { name, longname, type, size, permissions, owner, group, access_time, modify_time }."
    ),
)
@weave.op()
async def sftp_stat(
    session_id: Annotated[str, "Session to use"],
    path: Annotated[str, "Remote path"],
) -> FileInfoResult:
    return await asyncio.to_thread(_stat, session_id, path)


# ---------------------------------
# Whole-file I/O
# ---------------------------------


@mcp.tool(
    name="sftp_read",
    description=(
        "Read a remote file as text.\n\n"
        "Parameters:\n"
        "- session_id (string), path (string), encoding (string, default 'utf-8')\n"
        "Returns: { path, content, size, encoding }; size is in bytes.\n\n"
        "Use encoding 'base64' or 'hex' for binary files."
    ),
)
@weave.op()
async def sftp_read(
    session_id: Annotated[str, "Session to use"],
    path: Annotated[str, "Remote file"],
    encoding: Annotated[str, "Text encoding, or 'base64'/'hex'"] = "utf-8",
) -> ReadResult:
    return await asyncio.to_thread(_read, session_id, path, encoding)


@mcp.tool(
    name="sftp_write",
    description=(
        "Write text to a remote file, replacing any existing content.\n\n"
        "Parameters:\n"
        "- session_id (string), path (string), content (string)\n"
        "- encoding (string, default 'utf-8'): Text codec, or 'base64'/'hex' when content encodes binary data.\n"
        "- mode (string, optional): Octal mode applied after writing, e.g. '600'.\n"
        "Returns: { status: 'written', message }."
    ),
)
@weave.op()
async def sftp_write(
    session_id: Annotated[str, "Session to use"],
    path: Annotated[str, "Remote file"],
    content: Annotated[str, "Text to write"],
    encoding: Annotated[str, "Text encoding, or 'base64'/'hex'"] = "utf-8",
    mode: Annotated[str | None, "Octal mode, e.g. '644'"] = None,
) -> StatusResult:
    return await asyncio.to_thread(_write, session_id, path, content, encoding, mode)
