"""File-type classification for SFTP permission words.

Both `SFTPClient.stat` and `SFTPClient.listdir_attr` report a raw `st_mode`;
everything that turns such a word into a file type goes through
`classify_mode` so the two sources can never disagree.
"""

from __future__ import annotations

import stat
from datetime import datetime, timezone

DIRECTORY = "directory"
FILE = "file"
SYMLINK = "symlink"
OTHER = "other"

_TYPE_BY_FORMAT = {
    stat.S_IFDIR: DIRECTORY,
    stat.S_IFREG: FILE,
    stat.S_IFLNK: SYMLINK,
}


def classify_mode(mode: int | None) -> str:
    """Return "directory", "file", "symlink" or "other" for a mode word."""
    return _TYPE_BY_FORMAT.get(stat.S_IFMT(mode or 0), OTHER)


def timestamp_to_datetime(value: float | int | None) -> datetime:
    """Convert an SFTP epoch timestamp (possibly missing) to an aware UTC datetime."""
    return datetime.fromtimestamp(value or 0, tz=timezone.utc)


def format_longname(
    filename: str,
    mode: int,
    size: int,
    uid: int,
    gid: int,
    mtime: float | int | None,
) -> str:
    """Render an `ls -l` style line for entries the server did not describe."""
    modified = timestamp_to_datetime(mtime).strftime("%b %d %H:%M")
    return f"{stat.filemode(mode)} 1 {uid:<8} {gid:<8} {size:>8} {modified} {filename}"
