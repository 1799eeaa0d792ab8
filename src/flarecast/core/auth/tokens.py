"""Bearer credential issuing and resolution.

Raw tokens are shown once at issue time and only their SHA-256 digest is
stored. Resolution turns an ``Authorization`` header into the owning user id
or raises :class:`UnauthenticatedError`; the forecast tools never accept a
user id from the caller.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable, Mapping

from fastmcp.server.dependencies import get_http_headers

from flarecast.core.storage.models import ApiToken
from flarecast.core.storage.repository import JournalRepository

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "
TOKEN_BYTES = 32

HeaderSource = Callable[[], Mapping[str, str]]


class UnauthenticatedError(Exception):
    """Raised when a request carries no valid bearer credential."""


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def http_request_headers() -> Mapping[str, str]:
    """Headers of the current MCP HTTP request; empty outside HTTP transports."""
    return get_http_headers(include_all=True)


def parse_bearer(header: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        UnauthenticatedError: If the header is missing or malformed.
    """
    if not header:
        raise UnauthenticatedError("Missing Authorization header")
    if not header.lower().startswith(BEARER_PREFIX):
        raise UnauthenticatedError("Authorization header must use the Bearer scheme")
    token = header[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthenticatedError("Empty bearer token")
    return token


class TokenAuthenticator:
    """Issues, resolves and revokes per-user bearer tokens.

    Usage::

        auth = TokenAuthenticator(repository)
        token = auth.issue_token("user-123")
        auth.resolve(f"Bearer {token}")  # "user-123"
    """

    def __init__(
        self,
        repository: JournalRepository,
        *,
        header_source: HeaderSource = http_request_headers,
    ) -> None:
        self._repo = repository
        self._header_source = header_source

    def issue_token(self, user_id: str) -> str:
        """Create a new credential for ``user_id`` and return the raw token."""
        if not user_id or not user_id.strip():
            raise ValueError("user_id must not be empty")
        token = secrets.token_urlsafe(TOKEN_BYTES)
        self._repo.save_token(ApiToken(token_hash=hash_token(token), user_id=user_id.strip()))
        logger.info("Issued bearer token")
        return token

    def resolve(self, authorization: str | None) -> str:
        """Return the user id owning the credential in ``authorization``.

        Raises:
            UnauthenticatedError: If the credential is missing, malformed,
                unknown or revoked.
        """
        token = parse_bearer(authorization)
        record = self._repo.get_token(hash_token(token))
        if record is None:
            raise UnauthenticatedError("Unknown bearer token")
        if record.revoked:
            raise UnauthenticatedError("Bearer token has been revoked")
        return record.user_id

    def current_user(self) -> str:
        """Resolve the caller of the in-flight MCP request."""
        headers = self._header_source()
        return self.resolve(headers.get("authorization"))

    def revoke_user(self, user_id: str) -> int:
        """Revoke every credential a user holds; returns how many were active."""
        count = self._repo.revoke_tokens(user_id)
        logger.info("Revoked %d bearer token(s)", count)
        return count
