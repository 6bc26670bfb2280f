"""Bearer credentials for the spreadsheet service

A TokenProvider hands out OAuth access tokens:
- get_token(interactive=False) returns the cached token when it is still valid
- get_token(interactive=True) forces a fresh token (the one remediation attempt
  after a 401/403)
- invalidate(token) drops a token the upstream rejected

GoogleTokenProvider wraps google-auth authorized-user credentials. Refreshes
are blocking HTTP calls, so they run in a worker thread.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from keepli.config import GOOGLE_CREDENTIALS_FILE, SHEETS_SCOPES
from keepli.infrastructure.errors import CredentialError
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter, log_event

logger = get_logger(__name__)


class TokenProvider(Protocol):
    async def get_token(self, interactive: bool = False) -> str: ...

    def invalidate(self, token: str) -> None: ...


class StaticTokenProvider:
    """Fixed token, e.g. from KEEPLI_HOSTED_ACCESS_TOKEN or a test."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self, interactive: bool = False) -> str:
        if not self._token:
            raise CredentialError("No access token configured")
        return self._token

    def invalidate(self, token: str) -> None:
        logger.debug("Static token rejected upstream; nothing to invalidate")


class GoogleTokenProvider:
    """
    Access tokens from a google-auth authorized-user file

    The file holds client_id, client_secret and refresh_token (the output of an
    installed-app OAuth flow). Credentials are loaded on first use.
    """

    def __init__(
        self,
        credentials_file: str | Path = GOOGLE_CREDENTIALS_FILE,
        scopes: list[str] | None = None,
        credentials: Credentials | None = None,
    ):
        self.credentials_file = Path(credentials_file)
        self.scopes = scopes or SHEETS_SCOPES
        self._credentials = credentials
        self._lock = asyncio.Lock()

    def _load(self) -> Credentials:
        if self._credentials is None:
            try:
                self._credentials = Credentials.from_authorized_user_file(
                    str(self.credentials_file), scopes=self.scopes
                )
            except FileNotFoundError as e:
                logger.error("Google credentials file not found: %s", self.credentials_file)
                raise CredentialError(f"Google credentials not found at {self.credentials_file}") from e
            except ValueError as e:
                logger.error("Invalid Google credentials file %s: %s", self.credentials_file, e)
                raise CredentialError(f"Invalid Google credentials file: {e}") from e
        return self._credentials

    async def get_token(self, interactive: bool = False) -> str:
        """
        Return a usable access token

        Raises:
            CredentialError: If credentials are missing or the refresh fails

        Side Effects:
            - May call Google's token endpoint (in a worker thread)
            - Increments credentials.refresh counter
        """
        async with self._lock:
            credentials = self._load()
            if not interactive and credentials.valid and credentials.token:
                return credentials.token

            if not credentials.refresh_token:
                raise CredentialError("No refresh token available")

            try:
                await asyncio.to_thread(credentials.refresh, Request())
            except GoogleAuthError as e:
                logger.error("Failed to refresh Google credentials: %s", e)
                counter("credentials.refresh_failed")
                raise CredentialError(f"Token refresh failed: {e}") from e

            counter("credentials.refresh")
            log_event("credentials.refreshed", interactive=interactive)
            if not credentials.token:
                raise CredentialError("Token refresh returned no access token")
            return credentials.token

    def invalidate(self, token: str) -> None:
        if self._credentials is not None and self._credentials.token == token:
            self._credentials.token = None
            counter("credentials.invalidated")
