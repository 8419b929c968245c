"""Google Drive client for the Health Sync export folders.

Authentication uses a service account: a short-lived RS256 JWT assertion is
signed with the account's private key and exchanged at the OAuth token
endpoint for a bearer token (``drive.readonly`` scope).  Tokens are cached
until shortly before they expire.

Environment variables (via Settings):
    GOOGLE_SERVICE_ACCOUNT_EMAIL - service account client email
    GOOGLE_PRIVATE_KEY           - PEM private key; literal ``\\n`` sequences are accepted

Endpoints used:
    POST https://oauth2.googleapis.com/token       - JWT bearer grant
    GET  https://www.googleapis.com/drive/v3/files - folder listing
    GET  .../files/{id}?alt=media                  - file download
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import jwt as pyjwt

from src.biometrics.base import parse_iso, utc_now
from src.biometrics.sync.coordinator import RECENT_FILE_LIMIT, RemoteFile
from src.config import Settings

logger = logging.getLogger("biometrics.drive")

_TOKEN_URL = "https://oauth2.googleapis.com/token"
_DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
_DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
_JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
_ASSERTION_LIFETIME_SECONDS = 3600


class DriveError(RuntimeError):
    """Raised when a Drive listing or download fails."""


class DriveAuthError(DriveError):
    """Raised when no access token can be obtained."""


def normalize_private_key(private_key: str) -> str:
    """Accept keys pasted into env vars with escaped newlines."""
    return private_key.replace("\\n", "\n").strip()


class ServiceAccountCredentials:
    """Issues bearer tokens for a Google service account."""

    def __init__(
        self,
        email: str,
        private_key: str,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the credential provider.

        Args:
            email:       Service account client email (JWT issuer).
            private_key: PEM-encoded RSA private key.
            http_client: Optional pre-configured httpx client (for testing).
            clock:       Returns the current UTC time.
        """
        self._email = email
        self._private_key = normalize_private_key(private_key)
        self._http_client = http_client
        self._clock = clock
        self._access_token: str | None = None
        self._expires_at: datetime | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> ServiceAccountCredentials:
        return cls(
            email=settings.google_service_account_email,
            private_key=settings.google_private_key,
            http_client=http_client,
        )

    def build_assertion(self) -> str:
        """Sign the JWT assertion exchanged for an access token."""
        now = int(self._clock().timestamp())
        claims = {
            "iss": self._email,
            "scope": _DRIVE_SCOPE,
            "aud": _TOKEN_URL,
            "iat": now,
            "exp": now + _ASSERTION_LIFETIME_SECONDS,
        }
        return pyjwt.encode(claims, self._private_key, algorithm="RS256")

    def needs_refresh(self, buffer_seconds: int = 300) -> bool:
        """Return True if there is no cached token or it expires within the buffer."""
        if self._access_token is None or self._expires_at is None:
            return True
        return (self._expires_at - self._clock()).total_seconds() < buffer_seconds

    async def get_access_token(self) -> str:
        """Return a valid bearer token, exchanging a fresh assertion when needed.

        Raises:
            DriveAuthError: Missing credentials, unusable key, or token endpoint rejection.
        """
        if not self.needs_refresh():
            return self._access_token  # type: ignore[return-value]

        if not self._email or not self._private_key:
            raise DriveAuthError("Google service account credentials are not configured")

        try:
            assertion = self.build_assertion()
        except (ValueError, TypeError, pyjwt.PyJWTError) as exc:
            raise DriveAuthError(f"Invalid service account private key: {exc}") from exc

        data = {"grant_type": _JWT_BEARER_GRANT, "assertion": assertion}
        try:
            if self._http_client:
                response = await self._http_client.post(_TOKEN_URL, data=data)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(_TOKEN_URL, data=data)
        except httpx.HTTPError as exc:
            raise DriveAuthError(f"Failed to get access token: {exc}") from exc

        if response.is_error:
            raise DriveAuthError(f"Failed to get access token: {response.text}")

        payload = response.json()
        self._access_token = payload["access_token"]
        self._expires_at = self._clock() + timedelta(seconds=int(payload.get("expires_in", 3600)))
        logger.info("Drive: obtained access token for %s", self._email)
        return self._access_token


class DriveClient:
    """Minimal Drive v3 files client."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        """Initialize the client.

        Args:
            http_client: Optional pre-configured httpx client (for testing).
        """
        self._http_client = http_client

    async def list_recent_files(
        self, access_token: str, folder_id: str, limit: int = RECENT_FILE_LIMIT
    ) -> list[RemoteFile]:
        """List the most recently modified CSV files in a folder, newest first.

        Mime-type detection is unreliable for these exports, so files are
        matched on a ``.csv`` name instead.

        Raises:
            DriveError: On a non-2xx response.
        """
        response = await self._get(
            _DRIVE_FILES_URL,
            params={
                "q": f"{_in_parents(folder_id)} and name contains '.csv'",
                "fields": "files(id,name,modifiedTime)",
                "orderBy": "modifiedTime desc",
                "pageSize": limit,
            },
            access_token=access_token,
        )
        if response.is_error:
            raise DriveError(f"Failed to list files: {response.text}")

        files = response.json().get("files") or []
        return [
            RemoteFile(id=f["id"], name=f.get("name", ""), modified_time=parse_iso(f["modifiedTime"]))
            for f in files
        ]

    async def download_file(self, access_token: str, file_id: str) -> str:
        """Download a file's content as text.

        Raises:
            DriveError: On a non-2xx response.
        """
        response = await self._get(
            f"{_DRIVE_FILES_URL}/{file_id}",
            params={"alt": "media"},
            access_token=access_token,
        )
        if response.is_error:
            raise DriveError(f"Failed to download file: {response.status_code}")
        return response.text

    async def list_folder(self, access_token: str, folder_id: str, page_size: int = 20) -> dict:
        """List every file in a folder regardless of type (diagnostics)."""
        response = await self._get(
            _DRIVE_FILES_URL,
            params={
                "q": _in_parents(folder_id),
                "fields": "files(id,name,mimeType,modifiedTime)",
                "orderBy": "modifiedTime desc",
                "pageSize": page_size,
            },
            access_token=access_token,
        )
        if response.is_error:
            raise DriveError(f"Failed to list files: {response.text}")
        return response.json()

    async def _get(self, url: str, params: dict[str, Any], access_token: str) -> httpx.Response:
        """Make an authenticated GET request.

        Raises:
            DriveError: On transport failure.
        """
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if self._http_client:
                return await self._http_client.get(url, params=params, headers=headers)
            async with httpx.AsyncClient() as client:
                return await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise DriveError(f"Drive request failed: {exc}") from exc


def _in_parents(folder_id: str) -> str:
    escaped = folder_id.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}' in parents"
