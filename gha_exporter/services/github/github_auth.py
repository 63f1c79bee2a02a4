"""GitHub credential sources: static tokens and App installation tokens."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Optional, Protocol, Tuple

import httpx
from jose import jwt

from .exceptions import GithubConfigurationError

# Refresh installation tokens this long before GitHub expires them.
TOKEN_EXPIRY_MARGIN = timedelta(minutes=1)


class TokenSource(Protocol):
    def token(self) -> str:
        ...

    def clear(self) -> None:
        """Forget any cached credential so the next call fetches a fresh one."""
        ...


class StaticTokenSource:
    def __init__(self, token: str):
        if not token or not token.strip():
            raise GithubConfigurationError("GitHub token is required to call the API")
        self._token = token.strip()

    def token(self) -> str:
        return self._token

    def clear(self) -> None:
        # A personal access token cannot be refreshed
        pass


def load_private_key(raw: str) -> str:
    """Load private key from string or file path."""
    if "BEGIN" in raw and "PRIVATE KEY" in raw:
        return raw.replace("\\n", "\n")
    path = Path(raw.strip().strip('"'))
    if path.exists():
        return path.read_text()
    raise GithubConfigurationError(
        "GITHUB_APP_PRIVATE_KEY must be a PEM string or path to a private key file",
    )


def generate_jwt(app_id: str, private_key: str) -> str:
    """Generate a JWT for GitHub App authentication."""
    now = int(time.time())
    payload = {
        "iat": now - 60,
        "exp": now + 600,
        "iss": app_id,
    }
    pem = load_private_key(private_key)
    return jwt.encode(payload, pem, algorithm="RS256")


def request_installation_token(
    jwt_token: str,
    installation_id: str,
    api_url: str = "https://api.github.com",
    http_client: Optional[httpx.Client] = None,
) -> Tuple[str, datetime]:
    """Exchange an App JWT for an installation access token."""
    url = f"{api_url.rstrip('/')}/app/installations/{installation_id}/access_tokens"
    headers = {
        "Authorization": f"Bearer {jwt_token}",
        "Accept": "application/vnd.github+json",
    }
    if http_client is not None:
        response = http_client.post(url, headers=headers)
    else:
        response = httpx.post(url, headers=headers, timeout=15)
    response.raise_for_status()
    data = response.json()
    token = data.get("token")
    expires_at_raw = data.get("expires_at")
    expires_at = (
        datetime.fromisoformat(expires_at_raw.replace("Z", "+00:00"))
        if expires_at_raw
        else None
    )
    if not token or not expires_at:
        raise GithubConfigurationError(
            "GitHub installation token response missing token or expires_at"
        )
    return token, expires_at


class InstallationTokenSource:
    """
    Hands out a GitHub App installation token, exchanging a fresh one when
    the cached token is about to expire.
    """

    def __init__(
        self,
        app_id: str,
        private_key: str,
        installation_id: str,
        api_url: str = "https://api.github.com",
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        if not (app_id and private_key and installation_id):
            raise GithubConfigurationError(
                "GitHub App id, private key and installation id are all required"
            )
        self._app_id = app_id
        self._private_key = private_key
        self._installation_id = installation_id
        self._api_url = api_url
        self._http_client = http_client
        self._lock = Lock()
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def token(self) -> str:
        with self._lock:
            now = datetime.now(timezone.utc)
            if (
                self._token
                and self._expires_at
                and self._expires_at - TOKEN_EXPIRY_MARGIN > now
            ):
                return self._token

            jwt_token = generate_jwt(self._app_id, self._private_key)
            try:
                self._token, self._expires_at = request_installation_token(
                    jwt_token,
                    self._installation_id,
                    api_url=self._api_url,
                    http_client=self._http_client,
                )
            except httpx.HTTPError as exc:
                raise GithubConfigurationError(
                    f"Failed to obtain installation token for {self._installation_id}: {exc}"
                ) from exc
            return self._token

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = None
