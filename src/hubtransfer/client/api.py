"""HTTP client for the hub's file and large-object endpoints.

This module provides:
- HTTPClient: httpx-based client used by the download and upload engines
- RemoteMetadata: size/ETag/commit information from a metadata probe
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urljoin

import httpx

from hubtransfer.core.config import HubConfig
from hubtransfer.core.errors import (
    APIError,
    AuthorizationFailure,
    NetworkFailure,
    RemoteNotFound,
)
from hubtransfer.core.types import RepoScope

logger = logging.getLogger(__name__)

USER_AGENT = "hubtransfer/0.1.0"
MAX_REDIRECTS = 5

# Response headers carrying metadata of the file behind a redirect
HEADER_X_LINKED_ETAG = "x-linked-etag"
HEADER_X_LINKED_SIZE = "x-linked-size"
HEADER_X_REPO_COMMIT = "x-repo-commit"

LFS_HEADERS = {
    "Accept": "application/vnd.git-lfs+json",
    "Content-Type": "application/vnd.git-lfs+json",
}

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def normalize_etag(value: str | None) -> str | None:
    """Strip the weak marker and quotes from an ETag header value."""
    if not value:
        return None
    value = value.strip()
    if value.startswith("W/"):
        value = value[2:]
    return value.strip('"') or None


@dataclass
class RemoteMetadata:
    """Metadata of a remote file, obtained without fetching its body.

    Attributes:
        url: URL that was probed.
        etag: Normalized ETag (hash-shaped for large objects).
        size: Size in bytes, if announced.
        commit: Commit hash the revision resolved to.
        location: Redirect target (content-delivery URL), if any.
    """

    url: str
    etag: str | None
    size: int | None
    commit: str | None = None
    location: str | None = None

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> RemoteMetadata:
        """Create from the headers of a HEAD response."""
        headers = response.headers
        etag = normalize_etag(headers.get(HEADER_X_LINKED_ETAG) or headers.get("etag"))
        raw_size = headers.get(HEADER_X_LINKED_SIZE) or headers.get("content-length")
        location = headers.get("location") if response.is_redirect else None
        return cls(
            url=url,
            etag=etag,
            size=int(raw_size) if raw_size and raw_size.isdigit() else None,
            commit=headers.get(HEADER_X_REPO_COMMIT),
            location=urljoin(url, location) if location else None,
        )


class HTTPClient:
    """HTTP client for the hub's resolve and LFS batch endpoints."""

    def __init__(
        self,
        config: HubConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Hub configuration (endpoint, token, timeouts).
            transport: Optional httpx transport (used by tests).
        """
        self._config = config
        self._client = httpx.Client(
            timeout=config.timeout,
            transport=transport,
            follow_redirects=False,
            headers={"User-Agent": USER_AGENT},
        )

    @property
    def config(self) -> HubConfig:
        """Configuration this client was built from."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    # === URLs ===

    def resolve_url(self, scope: RepoScope, revision: str, path: str) -> str:
        """URL serving the content of path at revision."""
        return (
            f"{self._config.endpoint}/{scope.repo_type.url_prefix}{scope.repo_id}"
            f"/resolve/{quote(revision, safe='')}/{quote(path)}"
        )

    def lfs_batch_url(self, scope: RepoScope) -> str:
        """URL of the large-object batch endpoint for a repository."""
        return (
            f"{self._config.endpoint}/{scope.repo_type.url_prefix}"
            f"{quote(scope.repo_id)}.git/info/lfs/objects/batch"
        )

    def _auth_headers(self) -> dict[str, str]:
        if not self._config.token:
            return {}
        return {"Authorization": f"Bearer {self._config.token}"}

    def _auth_headers_for(self, url: str) -> dict[str, str]:
        # The token never leaves the configured endpoint
        if url.startswith(self._config.endpoint + "/"):
            return self._auth_headers()
        return {}

    # === Response handling ===

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.is_success:
            return response
        status = response.status_code
        if status in (401, 403):
            raise AuthorizationFailure(f"Not authorized ({status}) for {response.url}", status)
        if status == 404:
            raise RemoteNotFound(f"Not found: {response.url}", status)
        if status in RETRYABLE_STATUS_CODES:
            raise NetworkFailure(f"Transient status {status} from {response.url}", status)
        raise APIError(self._error_detail(response), status)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        response.read()
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            return str(data.get("error") or data.get("message") or data)
        return str(data)

    def _send(self, request: httpx.Request, stream: bool = False) -> httpx.Response:
        try:
            return self._client.send(request, stream=stream)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"Timed out: {request.url}", timed_out=True) from e
        except httpx.TransportError as e:
            raise NetworkFailure(f"{type(e).__name__}: {e}") from e

    # === Download path ===

    def probe(self, url: str) -> RemoteMetadata:
        """Fetch size/ETag metadata for a file without its body.

        Redirects are not followed; a 3xx answer yields the metadata headers
        plus the redirect location.

        Args:
            url: Resolve URL of the file.

        Returns:
            Remote metadata.
        """
        request = self._client.build_request(
            "HEAD",
            url,
            headers=self._auth_headers(),
            timeout=self._config.etag_timeout,
        )
        response = self._send(request)
        if not response.is_redirect:
            self._handle_response(response)
        metadata = RemoteMetadata.from_response(url, response)
        logger.debug(f"Probed {url}: etag={metadata.etag} size={metadata.size}")
        return metadata

    @contextmanager
    def open_download(self, url: str, offset: int = 0) -> Iterator[httpx.Response]:
        """Open a streaming GET, optionally starting at a byte offset.

        The bearer token is sent on the first request only, and only when it
        targets the configured endpoint; every redirected hop (content-delivery
        URLs) is requested without it.

        Args:
            url: Resolve URL (or direct content URL).
            offset: First byte to request; sends a Range header when > 0.

        Yields:
            The streaming response (status 200 or 206).

        Raises:
            NetworkFailure: On transport errors, including while streaming.
        """
        range_headers = {"Range": f"bytes={offset}-"} if offset > 0 else {}
        current = url
        headers = {**range_headers, **self._auth_headers_for(url)}

        for _ in range(MAX_REDIRECTS + 1):
            response = self._send(
                self._client.build_request("GET", current, headers=headers),
                stream=True,
            )
            if response.is_redirect:
                location = response.headers.get("location")
                response.close()
                if not location:
                    raise APIError(f"Redirect without location from {current}", response.status_code)
                current = urljoin(current, location)
                headers = dict(range_headers)
                logger.debug(f"Following redirect to {current}")
                continue

            try:
                self._handle_response(response)
                yield response
            except httpx.TimeoutException as e:
                raise NetworkFailure(f"Timed out while reading {current}", timed_out=True) from e
            except httpx.TransportError as e:
                raise NetworkFailure(f"{type(e).__name__} while reading {current}: {e}") from e
            finally:
                response.close()
            return

        raise NetworkFailure(f"Too many redirects for {url}")

    # === Upload path ===

    def lfs_batch(self, scope: RepoScope, objects: list[dict[str, Any]]) -> dict[str, Any]:
        """Negotiate an upload batch with the large-object endpoint.

        Args:
            scope: Target repository.
            objects: List of {"oid": ..., "size": ...} dictionaries.

        Returns:
            Parsed batch response.

        Raises:
            APIError: If the response is not a JSON object with an "objects" list.
        """
        body = {
            "operation": "upload",
            "transfers": ["basic", "multipart"],
            "objects": objects,
            "hash_algo": "sha256",
        }
        request = self._client.build_request(
            "POST",
            self.lfs_batch_url(scope),
            json=body,
            headers={**LFS_HEADERS, **self._auth_headers()},
        )
        response = self._handle_response(self._send(request))
        try:
            result = response.json()
        except ValueError as e:
            raise APIError(f"Unreadable batch response from {response.url}: {e}", response.status_code) from e
        if not isinstance(result, dict) or not isinstance(result.get("objects") or [], list):
            raise APIError(f"Malformed batch response from {response.url}", response.status_code)
        return result

    def put_content(
        self,
        url: str,
        content: bytes,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """PUT raw bytes to an upload URL issued by the batch endpoint."""
        request = self._client.build_request("PUT", url, content=content, headers=dict(headers or {}))
        return self._handle_response(self._send(request))

    def post_json(
        self,
        url: str,
        body: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """POST a JSON body to a completion or verify URL."""
        request = self._client.build_request(
            "POST",
            url,
            json=dict(body),
            headers={"Content-Type": "application/json", **dict(headers or {})},
        )
        return self._handle_response(self._send(request))
