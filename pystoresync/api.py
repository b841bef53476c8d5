"""API client for the remote content store."""

from __future__ import annotations

import json
import random
import threading
import time
from typing import Any

import httpx

from .config import config
from .exceptions import (
    StoreAPIError,
    StoreAuthenticationError,
    StoreConfigError,
    StoreInvalidResponseError,
    StoreNetworkError,
    StoreNotFoundError,
    StorePermissionError,
    StoreRateLimitError,
)
from .models import Item, Metadata
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY


class StoreClient:
    """Client for the list/upload/commit interface of a content store."""

    def __init__(
        self,
        store_id: str | None = None,
        api_url: str | None = None,
        api_key: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 60.0,
    ):
        """Initialize store client.

        Args:
            store_id: Identifier of the target store (uses config if not provided)
            api_url: Optional endpoint override (uses config if not provided)
            api_key: Optional bearer token (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 60.0)
        """
        self.store_id = store_id or config.store_id
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.api_key = api_key or config.api_key
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        if not self.store_id:
            raise StoreConfigError(
                "Store ID not configured. Pass --store-id or set "
                "PYSTORESYNC_STORE_ID environment variable."
            )

        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client.

        Chunk uploads call this from several worker threads.
        """
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                headers = {}
                if self.api_key:
                    headers["Authorization"] = f"Bearer {self.api_key}"
                self._client = httpx.Client(
                    headers=headers,
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                )
            return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                self._client.close()
            self._client = None

    def __enter__(self) -> StoreClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int, max_retries: int
    ) -> tuple[StoreAPIError, bool]:
        """Map an HTTP error to a store exception.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number
            max_retries: Retry limit of the request

        Returns:
            Tuple of (exception to raise, should_retry)

        Raises:
            StoreAuthenticationError: On 401
            StorePermissionError: On 403
            StoreNotFoundError: On 404
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise StoreAuthenticationError("Unauthorized - check your API key") from e
        elif status_code == 403:
            raise StorePermissionError(
                "Access forbidden - check your permissions on this store"
            ) from e
        elif status_code == 404:
            raise StoreNotFoundError(f"Store not found: {self.store_id}") from e
        elif status_code == 429:
            error: StoreAPIError = StoreRateLimitError(
                "Rate limit exceeded - please try again later"
            )
            return (error, attempt < max_retries)

        error_msg = f"Store request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass

        error = StoreAPIError(error_msg)
        should_retry = 500 <= status_code < 600 and attempt < max_retries
        return (error, should_retry)

    def _request(
        self,
        method: str,
        endpoint: str,
        max_retries: int | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: Endpoint path relative to the store
            max_retries: Override of the client's retry limit for this call
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data (empty dict for empty responses)

        Raises:
            StoreAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/stores/{self.store_id}/{endpoint.lstrip('/')}"
        last_exception: StoreAPIError | None = None
        client = self._get_client()
        if max_retries is None:
            max_retries = self.max_retries

        for attempt in range(max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()

                if not response.content:
                    return {}
                content_type = response.headers.get("Content-Type", "")
                if "application/json" not in content_type:
                    raise StoreInvalidResponseError(
                        f"Unexpected response type: {content_type}"
                    )
                try:
                    return response.json()
                except ValueError as e:
                    raise StoreInvalidResponseError(
                        "Invalid JSON response from store"
                    ) from e

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(
                    e, attempt, max_retries
                )
                last_exception = error

                if should_retry:
                    retry_after = e.response.headers.get("Retry-After")
                    if (
                        isinstance(error, StoreRateLimitError)
                        and retry_after
                        and retry_after.isdigit()
                    ):
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = StoreNetworkError(f"Network error: {e}")
                last_exception = error
                if attempt < max_retries:
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise StoreAPIError("Request failed after all retry attempts")

    # =========================
    # Store Operations
    # =========================

    def list_entries(self) -> list[Metadata]:
        """Fetch the current manifest of the store.

        Returns:
            List of stored entries
        """
        result = self._request("GET", "/entries")
        if isinstance(result, dict):
            result = result.get("entries", [])
        if not isinstance(result, list):
            raise StoreInvalidResponseError("Manifest response is not a list")
        try:
            return [Metadata.from_dict(entry) for entry in result]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreInvalidResponseError(f"Malformed manifest entry: {e}") from e

    def list_manifest(self) -> dict[str, Metadata]:
        """Fetch the manifest keyed by entry name."""
        return {entry.name: entry for entry in self.list_entries()}

    def upload(
        self,
        sequence_id: int,
        blob: bytes,
        items: list[Item],
        is_final: bool,
    ) -> Any:
        """Upload one chunk of the pending transaction.

        Safe to call concurrently for distinct sequence ids.

        Args:
            sequence_id: Position of the chunk in the run
            blob: Concatenated bytes of the chunk's items
            items: Item descriptors, in blob order
            is_final: Whether this is the last chunk of the run

        Returns:
            Upload response from API
        """
        return self._request(
            "POST",
            f"/chunks/{sequence_id}",
            files={"blob": ("blob", blob, "application/octet-stream")},
            data={
                "items": json.dumps([item.to_dict() for item in items]),
                "is_final": "true" if is_final else "false",
            },
        )

    def commit(self) -> Any:
        """Atomically apply all uploaded chunks to the visible manifest."""
        # Never retried: a lost response could otherwise commit twice
        return self._request("POST", "/commit", max_retries=0)
