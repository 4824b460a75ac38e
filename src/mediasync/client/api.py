"""HTTP client for the media server API.

This module provides:
- HTTPClient: HTTP client for communicating with the server
- Batch reconciliation (identifier -> hash partition)
- Media upload, listing and deletion
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from mediasync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthExpiredError(APIError):
    """The bearer token was rejected; the session must be re-established."""


class NotFoundError(APIError):
    """Resource not found."""


class NetworkError(APIError):
    """The request did not reach the server or timed out."""


def _from_millis(value: int | float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


@dataclass
class RemoteMediaItem:
    """Media metadata from server."""

    id: str
    original_name: str
    type: str
    size: int
    last_modified: datetime | None
    uploaded_at: datetime | None = None
    has_thumbnail: bool = False
    latitude: float | None = None
    longitude: float | None = None
    altitude: float | None = None
    duration_ms: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteMediaItem:
        """Create from API response dictionary."""
        return cls(
            id=str(data["id"]),
            original_name=data.get("original_name", ""),
            type=data.get("type", "image"),
            size=int(data.get("size", 0)),
            last_modified=_from_millis(data.get("last_modified")),
            uploaded_at=_from_millis(data.get("uploaded_at")),
            has_thumbnail=bool(data.get("has_thumbnail", False)),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            altitude=data.get("altitude"),
            duration_ms=data.get("duration"),
        )


@dataclass
class ReconcileResult:
    """Result of the reconcile API call.

    Attributes:
        already_synced: identifier -> remote id for items the server has.
        needs_upload: identifiers the server does not have.
        generation: Opaque server generation marker, if sent.
    """

    already_synced: dict[str, str]
    needs_upload: list[str]
    generation: str | None = None


class HTTPClient:
    """HTTP client for the media server API.

    The bearer token is passed per call so that the caller's credential
    provider stays the single source of truth.
    """

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the client.

        Args:
            config: Server configuration with URL, timeout and SSL settings.
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _error_detail(response: httpx.Response, default: str) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or default
        if isinstance(body, dict):
            return str(body.get("detail") or body.get("message") or default)
        return default

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            detail = self._error_detail(response, "Invalid or expired token")
            raise AuthExpiredError(detail, 401)
        if response.status_code == 404:
            raise NotFoundError("Resource not found", 404)
        if response.status_code >= 400:
            detail = self._error_detail(response, "Unknown error")
            raise APIError(detail, response.status_code)
        return response

    @staticmethod
    def _json_object(response: httpx.Response, what: str) -> dict[str, Any]:
        """Decode a JSON object body, raising APIError on anything else."""
        try:
            data = response.json()
        except ValueError as e:
            raise APIError(f"Malformed {what} response", response.status_code) from e
        if not isinstance(data, dict):
            raise APIError(f"Malformed {what} response", response.status_code)
        return data

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures to NetworkError."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {url} timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e
        return self._handle_response(response)

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is reachable and healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Batch reconciliation ===

    def reconcile(
        self,
        token: str,
        hashes_by_identifier: dict[str, str],
    ) -> ReconcileResult:
        """Ask the server which items it already has.

        The full candidate map is sent, including items believed to be
        synced, so the server can refute stale local records.

        Args:
            token: Bearer token.
            hashes_by_identifier: identifier -> content hash.

        Returns:
            ReconcileResult partitioning the identifiers.

        Raises:
            AuthExpiredError: If the token was rejected.
            APIError: On any other server error or a malformed response.
            NetworkError: If the server could not be reached.
        """
        response = self._send(
            "POST",
            "/media/sync",
            json=hashes_by_identifier,
            headers=self._auth(token),
        )
        data = self._json_object(response, "reconcile")

        already = data.get("alreadySynced", data.get("already_synced")) or {}
        needs = data.get("needsUpload", data.get("needs_upload")) or []
        if not isinstance(already, dict) or not isinstance(needs, list):
            raise APIError("Malformed reconcile response", response.status_code)
        generation = data.get("generation")

        logger.debug(
            f"Reconciled {len(hashes_by_identifier)} items: "
            f"{len(already)} present, {len(needs)} missing"
        )
        return ReconcileResult(
            already_synced={str(k): str(v) for k, v in already.items()},
            needs_upload=[str(i) for i in needs],
            generation=str(generation) if generation is not None else None,
        )

    # === Media operations ===

    def upload_media(
        self,
        token: str,
        staged_path: Path,
        metadata: dict[str, Any],
        content_type: str,
    ) -> str:
        """Upload one staged media file.

        Args:
            token: Bearer token.
            staged_path: Temporary file holding the content.
            metadata: JSON metadata sent as the "metadata" part.
            content_type: MIME type of the file part.

        Returns:
            Remote id assigned by the server.
        """
        with open(staged_path, "rb") as f:
            response = self._send(
                "POST",
                "/media/upload",
                files={
                    "file": (staged_path.name, f, content_type),
                    "metadata": (None, json.dumps(metadata), "application/json"),
                },
                headers=self._auth(token),
            )
        media_item = self._json_object(response, "upload").get("media_item")
        if not isinstance(media_item, dict) or "id" not in media_item:
            raise APIError("Media item not found in upload response", response.status_code)
        return str(media_item["id"])

    def list_media(
        self,
        token: str,
        media_type: str | None = None,
        since: int | None = None,
    ) -> list[RemoteMediaItem]:
        """List media stored on the server.

        Args:
            token: Bearer token.
            media_type: Optional "image" or "video" filter.
            since: Optional timestamp (ms) for incremental listing.

        Returns:
            List of media metadata.
        """
        params: dict[str, str] = {}
        if media_type:
            params["type"] = media_type
        if since is not None:
            params["since"] = str(since)
        response = self._send(
            "GET", "/media/files", params=params, headers=self._auth(token)
        )
        items = self._json_object(response, "listing").get("items") or []
        try:
            return [RemoteMediaItem.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise APIError(f"Malformed listing response: {e}", response.status_code) from e

    def delete_media(self, token: str, remote_id: str) -> None:
        """Delete a media item on the server.

        Args:
            token: Bearer token.
            remote_id: Id of the item to delete.
        """
        self._send("DELETE", f"/media/{remote_id}", headers=self._auth(token))
