"""Flarecast entry point — ``python -m flarecast.core.server.main``.

Subcommands::

    serve                      start the MCP server (default)
    issue-token <user_id>      print a new bearer token for a user
    revoke-tokens <user_id>    revoke every token a user holds
    generate-key               print a fresh ENCRYPTION_KEY
"""

from __future__ import annotations

import argparse
import logging
from ipaddress import ip_address

from flarecast.core.auth.tokens import TokenAuthenticator
from flarecast.core.config.settings import Settings, get_settings
from flarecast.core.server.app import build_repository, create_app
from flarecast.core.storage.encryption import FieldEncryptor

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run(settings: Settings) -> None:
    """Start the Flarecast MCP server with Streamable HTTP transport."""
    if not settings.flarecast_allow_insecure_bind and not _is_loopback_host(settings.flarecast_host):
        raise RuntimeError(
            "Refusing to bind Flarecast to a non-loopback host without TLS in front. "
            "Set FLARECAST_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Flarecast server on %s:%d",
        settings.flarecast_host,
        settings.flarecast_port,
    )

    mcp = create_app(settings=settings)
    mcp.run(
        transport="streamable-http",
        host=settings.flarecast_host,
        port=settings.flarecast_port,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flarecast", description="Flare-risk forecasting server")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="start the MCP server")
    issue = sub.add_parser("issue-token", help="issue a bearer token for a user")
    issue.add_argument("user_id")
    revoke = sub.add_parser("revoke-tokens", help="revoke all bearer tokens of a user")
    revoke.add_argument("user_id")
    sub.add_parser("generate-key", help="print a new Fernet encryption key")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.flarecast_log_level.upper(), logging.INFO))

    if args.command == "generate-key":
        print(FieldEncryptor.generate_key())
    elif args.command == "issue-token":
        authenticator = TokenAuthenticator(build_repository(settings))
        print(authenticator.issue_token(args.user_id))
    elif args.command == "revoke-tokens":
        authenticator = TokenAuthenticator(build_repository(settings))
        print(authenticator.revoke_user(args.user_id))
    else:
        run(settings)


if __name__ == "__main__":
    main()
