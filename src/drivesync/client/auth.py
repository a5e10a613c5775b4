"""OAuth authorisation for the drive API.

This module provides:
- AuthSettings: OAuth application settings (client id, endpoints)
- Authoriser: Redeems codes / refresh tokens stored in a key file
- BearerAuth: httpx auth flow that injects and refreshes the access token

Key file format:
    One line:  an authorisation code, or the whole redirect URL
               containing "code=...".
    Two lines: the client id followed by a refresh token. This is what
               the authoriser writes back after every token fetch.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

DEFAULT_AUTHORIZE_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
DEFAULT_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
DEFAULT_REDIRECT_URL = "https://login.microsoftonline.com/common/oauth2/nativeclient"
DEFAULT_SCOPE = "offline_access Files.ReadWrite"

# Refresh slightly before the server-side expiry
EXPIRY_MARGIN = 60.0


class AuthorisationError(Exception):
    """Unable to obtain an access token."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class AuthSettings:
    """OAuth application settings.

    Attributes:
        client_id: Application (client) id registered with the provider.
        client_secret: Optional client secret (not needed for native apps).
        redirect_url: Redirect URL registered for the application.
        authorize_url: Sign-in endpoint.
        token_url: Token redemption endpoint.
        scope: Space separated scopes to request.
    """

    client_id: str
    client_secret: str = ""
    redirect_url: str = DEFAULT_REDIRECT_URL
    authorize_url: str = DEFAULT_AUTHORIZE_URL
    token_url: str = DEFAULT_TOKEN_URL
    scope: str = DEFAULT_SCOPE


def authorisation_url(settings: AuthSettings) -> str:
    """Build the URL the user opens to authorise the application."""
    params = {
        "client_id": settings.client_id,
        "response_type": "code",
        "scope": settings.scope,
        "redirect_uri": settings.redirect_url,
    }
    return f"{settings.authorize_url}?{urlencode(params)}"


class Authoriser:
    """Holds the current access token and refreshes it from the key file."""

    def __init__(
        self,
        settings: AuthSettings,
        key_file: Path,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the authoriser and fetch a first token.

        Args:
            settings: OAuth application settings.
            key_file: File holding the authorisation code or refresh token.
            timeout: Token request timeout in seconds.

        Raises:
            AuthorisationError: If the key file is missing, malformed, or
                the token endpoint rejects it.
        """
        self._settings = settings
        self._key_file = key_file
        self._timeout = timeout
        self._lock = threading.Lock()
        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._expires_at = 0.0

        if not key_file.is_file():
            raise AuthorisationError(f"Specified key file '{key_file}' cannot be found.", 401)

        lines = [line.strip() for line in key_file.read_text().splitlines() if line.strip()]

        if not lines:
            raise AuthorisationError(f"Key file '{key_file}' is empty.", 401)
        if len(lines) == 1:
            self._redeem_code(self._extract_code(lines[0]))
        elif len(lines) == 2:
            if lines[0] != settings.client_id:
                raise AuthorisationError("Key file does not match this application.", 401)
            self._redeem_refresh_token(lines[1])
        else:
            raise AuthorisationError("Expected key file with code and/or refresh token", 401)

    def _extract_code(self, text: str) -> str:
        """Accept either a bare code or the full redirect URL."""
        match = re.search(r"[?&]code=([^&]+)", text)
        if match:
            return match.group(1)
        return text

    def get_access_token(self) -> str:
        """Get a valid access token, refreshing it if it has expired."""
        with self._lock:
            if self._access_token is None:
                raise AuthorisationError("Authoriser has not been initialised")
            if time.monotonic() >= self._expires_at:
                logger.info("Authorisation token has expired - refreshing")
                self._redeem_refresh_token(self._refresh_token or "")
            return self._access_token

    def refresh(self) -> None:
        """Force a token refresh (e.g. after a 401 response)."""
        with self._lock:
            self._redeem_refresh_token(self._refresh_token or "")

    def _redeem_code(self, code: str) -> None:
        logger.debug("Fetching authorisation token using authorisation code")
        self._fetch({
            "client_id": self._settings.client_id,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self._settings.redirect_url,
        })

    def _redeem_refresh_token(self, refresh_token: str) -> None:
        logger.debug("Fetching authorisation token using refresh token")
        self._fetch({
            "client_id": self._settings.client_id,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
            "redirect_uri": self._settings.redirect_url,
        })

    def _fetch(self, form: dict[str, str]) -> None:
        if self._settings.client_secret:
            form["client_secret"] = self._settings.client_secret

        try:
            response = httpx.post(self._settings.token_url, data=form, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise AuthorisationError(f"Unable to reach token endpoint: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200 or "error" in data:
            raise AuthorisationError(
                f"Error code {response.status_code} - {data.get('error')} "
                f"({data.get('error_description')})",
                response.status_code,
            )

        self._access_token = data["access_token"]
        self._refresh_token = data.get("refresh_token", self._refresh_token)
        expires_in = float(data.get("expires_in", 3600))
        self._expires_at = time.monotonic() + max(expires_in - EXPIRY_MARGIN, 0.0)

        logger.info("Fetched new authorisation token and refresh token")
        self._save()

    def _save(self) -> None:
        """Persist client id and refresh token for the next run."""
        if not self._refresh_token:
            return
        try:
            self._key_file.write_text(f"{self._settings.client_id}\n{self._refresh_token}\n")
        except OSError:
            logger.exception("Unable to write to key file %s", self._key_file)


class BearerAuth(httpx.Auth):
    """httpx auth flow using an Authoriser.

    Adds the bearer header to every request. On a 401 response the token
    is refreshed once and the request replayed.
    """

    def __init__(self, authoriser: Authoriser) -> None:
        self._authoriser = authoriser

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._authoriser.get_access_token()}"
        response = yield request

        if response.status_code == 401:
            try:
                self._authoriser.refresh()
            except AuthorisationError as e:
                logger.warning(f"Token refresh after 401 failed: {e}")
                return
            request.headers["Authorization"] = f"Bearer {self._authoriser.get_access_token()}"
            yield request


class StaticTokenAuth(httpx.Auth):
    """Fixed bearer token, for tests and pre-issued tokens."""

    def __init__(self, token: str) -> None:
        self._token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request
