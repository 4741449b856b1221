"""Command-line entry point for the SSH session MCP server.

Usage:
    ssh-mcp                                   # servers from servers.yaml / .env
    ssh-mcp --config ./servers.yaml
    ssh-mcp --host 10.0.0.5 --user deploy --key ~/.ssh/id_ed25519
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from ssh_mcp.config import DEFAULT_PORT, ServerConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ssh-mcp",
        description="MCP server managing SSH sessions, remote commands and SFTP transfers.",
    )
    parser.add_argument("--config", help="Path to the servers YAML file")
    parser.add_argument(
        "--transport",
        choices=("stdio", "sse", "streamable-http"),
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )

    server = parser.add_argument_group("server", "Define a server on the command line")
    server.add_argument("--host", help="Server hostname or IP")
    server.add_argument("--port", type=int, default=DEFAULT_PORT, help="SSH port (default: 22)")
    server.add_argument("--user", help="SSH username")
    server.add_argument("--password", help="SSH password")
    server.add_argument("--key", help="Path to a private key file")
    server.add_argument("--passphrase", help="Passphrase for the private key")
    server.add_argument("--id", dest="server_id", default="cli", help="Server id (default: cli)")
    server.add_argument("--name", help="Display name (default: user@host)")
    return parser


def server_from_args(args: argparse.Namespace) -> ServerConfig | None:
    """Build the command-line server, or None when --host/--user are absent."""
    if not args.host or not args.user:
        return None
    return ServerConfig(
        id=args.server_id,
        name=args.name or f"{args.user}@{args.host}",
        host=args.host,
        username=args.user,
        port=args.port,
        password=args.password,
        private_key_path=args.key,
        passphrase=args.passphrase,
        description="Server from command line",
    )


def configure_logging(level: str) -> None:
    # stdout carries the MCP stdio protocol
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if args.config:
        os.environ["SSH_MCP_CONFIG"] = args.config

    from ssh_mcp.server import config_manager, mcp, session_manager

    cli_server = server_from_args(args)
    if cli_server is not None:
        config_manager.cli_server = cli_server
        config_manager.reload()

    logger = logging.getLogger("ssh_mcp")
    logger.info("Starting SSH MCP server (%s transport)", args.transport)
    try:
        mcp.run(transport=args.transport)
    finally:
        session_manager.shutdown()


if __name__ == "__main__":
    main()
