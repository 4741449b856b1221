"""Paramiko-based remote command execution over registered sessions.

`RemoteExecutor` runs one command per exec channel on a session's existing
connection. A reader thread drains stdout and stderr into a completion object
while the caller waits on it with a deadline; whichever of "channel closed",
"stream error" or "deadline passed" happens first decides the outcome.

Usage:
    session = manager.get_session(session_id)
    rx = RemoteExecutor(session)
    result = rx.execute("echo hello && uname -a", timeout=10)
    print(result.stdout, result.exit_code)

    result = rx.execute_sudo("systemctl restart nginx", sudo_password=pw)
"""

from __future__ import annotations

import codecs
import logging
import shlex
import threading
import time
from collections.abc import Callable, Iterable

import paramiko

from .errors import CommandTimeoutError, NotConnectedError, SSHError, TransportError
from .models import CommandResult, Session
from .utils.masking import redact, strip_sudo_prompts

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 30.0
DEFAULT_ENCODING = "utf-8"
BUFFER_SIZE = 32768
POLL_INTERVAL = 0.01


class _StreamCompletion:
    """Single-assignment outcome of an exec channel.

    The reader thread resolves it with an exit status or an error; the
    caller waits on it. Only the first `resolve` has any effect.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.exit_code: int | None = None
        self.signal: str | None = None
        self.error: SSHError | None = None

    def resolve(
        self,
        *,
        exit_code: int | None = None,
        signal: str | None = None,
        error: SSHError | None = None,
    ) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self.exit_code = exit_code
            self.signal = signal
            self.error = error
            self._event.set()
            return True

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)


def _drain(
    channel: paramiko.Channel,
    stdout: bytearray,
    stderr: bytearray,
    on_stdout: Callable[[bytes], bool] | None,
) -> bool:
    """Read whatever is buffered on both streams; True if anything was read."""
    got_data = False
    if channel.recv_ready():
        chunk = channel.recv(BUFFER_SIZE)
        if chunk:
            got_data = True
            if on_stdout is None or on_stdout(chunk):
                stdout.extend(chunk)
    if channel.recv_stderr_ready():
        chunk = channel.recv_stderr(BUFFER_SIZE)
        if chunk:
            got_data = True
            stderr.extend(chunk)
    return got_data


def _pump_channel(
    channel: paramiko.Channel,
    stdout: bytearray,
    stderr: bytearray,
    completion: _StreamCompletion,
    on_stdout: Callable[[bytes], bool] | None = None,
) -> None:
    """Drain a channel until it reports an exit status or closes.

    `on_stdout` may inspect each stdout chunk; returning False keeps the
    chunk out of the captured output.
    """
    try:
        while True:
            if _drain(channel, stdout, stderr, on_stdout):
                continue
            if channel.exit_status_ready():
                # The last output can arrive together with the exit status.
                while not (channel.eof_received or channel.closed):
                    if not _drain(channel, stdout, stderr, on_stdout):
                        time.sleep(POLL_INTERVAL)
                while _drain(channel, stdout, stderr, on_stdout):
                    pass
                status = channel.recv_exit_status()
                # paramiko reports -1 when the process ended without an exit
                # status (killed by a signal).
                completion.resolve(exit_code=status if status >= 0 else None)
                return
            if channel.closed:
                while _drain(channel, stdout, stderr, on_stdout):
                    pass
                completion.resolve(exit_code=None)
                return
            time.sleep(POLL_INTERVAL)
    except Exception as e:
        completion.resolve(error=TransportError(f"Stream error: {e}"))


def _check_encoding(encoding: str) -> str:
    try:
        codecs.lookup(encoding)
    except LookupError as e:
        raise ValueError(f"Unknown encoding: {encoding}") from e
    return encoding


class RemoteExecutor:
    """Run commands on a registered session.

    Args:
        session: A connected session from `SessionManager.get_session`.
        default_timeout: Seconds to wait for a command when none is given.
        encoding: Default codec used to decode captured output.
    """

    def __init__(
        self,
        session: Session,
        *,
        default_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        encoding: str = DEFAULT_ENCODING,
    ):
        self.session = session
        self.default_timeout = default_timeout
        self.encoding = _check_encoding(encoding)

    def _open_channel(self, command: str, *, pty: bool = False) -> paramiko.Channel:
        session = self.session
        if not session.connected:
            raise NotConnectedError(f"Session is not connected: {session.id}")
        transport = session.client.get_transport()
        if transport is None or not transport.is_active():
            raise NotConnectedError(f"SSH transport is not active for session {session.id}")

        session.touch()
        try:
            channel = transport.open_session()
        except (paramiko.SSHException, OSError) as e:
            raise TransportError(f"Failed to open exec channel on session {session.id}: {e}") from e
        try:
            if pty:
                channel.get_pty()
            channel.exec_command(command)
        except (paramiko.SSHException, OSError) as e:
            channel.close()
            raise TransportError(f"Failed to execute command on session {session.id}: {e}") from e
        return channel

    def _collect(
        self,
        channel: paramiko.Channel,
        timeout: float | None,
        encoding: str,
        *,
        on_stdout: Callable[[bytes], bool] | None = None,
    ) -> CommandResult:
        timeout = self.default_timeout if timeout is None else timeout
        stdout = bytearray()
        stderr = bytearray()
        completion = _StreamCompletion()

        reader = threading.Thread(
            target=_pump_channel,
            args=(channel, stdout, stderr, completion, on_stdout),
            name=f"ssh-exec-{self.session.id[:8]}",
            daemon=True,
        )
        reader.start()

        if not completion.wait(timeout):
            completion.resolve(error=CommandTimeoutError(f"Command execution timeout after {timeout}s"))
        if completion.error is not None:
            # The remote process is not signalled; closing the channel at least
            # frees it on our side and stops the reader.
            channel.close()
            raise completion.error

        reader.join(timeout=1.0)
        channel.close()
        self.session.record_command()
        return CommandResult(
            stdout=stdout.decode(encoding, errors="replace").strip(),
            stderr=stderr.decode(encoding, errors="replace").strip(),
            exit_code=completion.exit_code,
            signal=completion.signal,
        )

    def execute(
        self,
        command: str,
        *,
        timeout: float | None = None,
        encoding: str | None = None,
    ) -> CommandResult:
        """Execute a command and wait for it to finish.

        Raises:
            CommandTimeoutError: No exit within `timeout` seconds.
            TransportError: The channel could not be opened or failed mid-stream.
            NotConnectedError: The session's connection is gone.
        """
        codec = _check_encoding(encoding or self.encoding)
        logger.debug("Executing command on session %s", self.session.id)
        channel = self._open_channel(command)
        return self._collect(channel, timeout, codec)

    def execute_sequence(
        self,
        commands: Iterable[str],
        *,
        timeout: float | None = None,
        encoding: str | None = None,
        stop_on_error: bool = False,
    ) -> list[CommandResult]:
        """Execute commands one after another.

        A command that fails to execute is recorded with exit code -1 and the
        failure message as stderr instead of raising. With `stop_on_error`,
        the sequence stops after the first non-zero exit or failure.
        """
        results: list[CommandResult] = []
        for command in commands:
            try:
                result = self.execute(command, timeout=timeout, encoding=encoding)
            except SSHError as e:
                results.append(CommandResult(stdout="", stderr=str(e), exit_code=-1, signal=None))
                if stop_on_error:
                    break
                continue
            results.append(result)
            if stop_on_error and result.exit_code != 0:
                break
        return results

    def execute_sudo(
        self,
        command: str,
        *,
        sudo_password: str | None = None,
        timeout: float | None = None,
        encoding: str | None = None,
    ) -> CommandResult:
        """Execute a command with sudo.

        With a password, the command runs as `sudo -S` under a pty with the
        password piped in, and a password prompt seen on stdout is answered
        once. Without one, sudo must be passwordless on the remote host.
        The password never appears in the returned result.
        """
        if sudo_password:
            wrapped = f"echo {shlex.quote(sudo_password)} | sudo -S {command}"
        else:
            wrapped = f"sudo {command}"

        codec = _check_encoding(encoding or self.encoding)
        logger.debug("Executing sudo command on session %s", self.session.id)
        channel = self._open_channel(wrapped, pty=bool(sudo_password))
        password_sent = False

        def answer_prompt(chunk: bytes) -> bool:
            nonlocal password_sent
            if password_sent or not sudo_password:
                return True
            if "password" not in chunk.decode(codec, errors="replace").lower():
                return True
            channel.sendall((sudo_password + "\n").encode(codec))
            password_sent = True
            return False

        result = self._collect(channel, timeout, codec, on_stdout=answer_prompt)
        result.stdout = redact(result.stdout, sudo_password).strip()
        result.stderr = strip_sudo_prompts(redact(result.stderr, sudo_password))
        return result

    def execute_with_input(
        self,
        command: str,
        input_data: str | bytes,
        *,
        timeout: float | None = None,
        encoding: str | None = None,
    ) -> CommandResult:
        """Execute a command, feed `input_data` to its stdin, then close stdin."""
        codec = _check_encoding(encoding or self.encoding)
        logger.debug("Executing command with input on session %s", self.session.id)
        channel = self._open_channel(command)
        if isinstance(input_data, str):
            input_data = input_data.encode(codec)
        try:
            channel.sendall(input_data)
            channel.shutdown_write()
        except (paramiko.SSHException, OSError) as e:
            channel.close()
            raise TransportError(f"Failed to send input on session {self.session.id}: {e}") from e
        return self._collect(channel, timeout, codec)
