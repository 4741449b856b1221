"""Typed failures raised by the session, command and SFTP engines.

Messages name the failing session, path or host and carry the underlying
transport message when there is one. They never contain passwords or key
passphrases.
"""


class SSHError(Exception):
    """Base class for every failure raised by the SSH engines."""


class NotFoundError(SSHError):
    """Unknown session id or remote/local path."""


class NotConnectedError(SSHError):
    """The session exists but its connection is no longer usable."""


class ResourceExhaustedError(SSHError):
    """The maximum number of concurrent sessions has been reached."""


class AuthenticationError(SSHError):
    """The remote host rejected the supplied credentials."""


class CommandTimeoutError(SSHError):
    """An operation did not complete within its time bound."""


class TransportError(SSHError):
    """Underlying connection, channel or SFTP fault."""


class ConflictError(SSHError):
    """A transfer precondition failed: destination exists or source is missing."""
