"""Typed connection records shared by the configuration and session layers."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_PORT = 22
DEFAULT_CONNECT_TIMEOUT = 30.0


@dataclass
class SSHCredentials:
    """Everything needed to authenticate one SSH connection.

    `private_key` holds either a path to a key file or the key material
    itself. Secrets are excluded from the dataclass repr so credentials can be
    logged without leaking them.
    """

    host: str
    username: str
    port: int = DEFAULT_PORT
    password: str | None = field(default=None, repr=False)
    private_key: str | None = field(default=None, repr=False)
    passphrase: str | None = field(default=None, repr=False)
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    @property
    def target(self) -> tuple[str, int, str]:
        """Identity used to deduplicate sessions: (host, port, username)."""
        return self.host, self.port or DEFAULT_PORT, self.username


@dataclass
class ServerConfig:
    id: str
    name: str
    host: str
    username: str
    port: int = DEFAULT_PORT
    password: str | None = field(default=None, repr=False)
    private_key_path: str | None = None
    passphrase: str | None = field(default=None, repr=False)
    description: str | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def auth_method(self) -> str:
        if self.private_key_path:
            return "private_key"
        if self.password:
            return "password"
        return "none"

    def has_tag(self, tag: str) -> bool:
        return any(t.lower() == tag.lower() for t in self.tags)

    def to_credentials(
        self,
        *,
        password_override: str | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> SSHCredentials:
        """Build connection credentials, optionally replacing the stored password."""
        return SSHCredentials(
            host=self.host,
            username=self.username,
            port=self.port,
            password=password_override or self.password,
            private_key=self.private_key_path,
            passphrase=self.passphrase,
            connect_timeout=connect_timeout,
        )

    def public_info(self) -> dict[str, object]:
        """Describe the server without any secret values."""
        return {
            "id": self.id,
            "name": self.name,
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "description": self.description,
            "tags": list(self.tags),
            "auth_method": self.auth_method,
        }
