"""
Google Cloud Storage object-count source.

Counts the objects in a bucket (optionally under a prefix) as the queue
depth for a trigger. The storage client is synchronous, so listing runs on a
worker thread.

Credentials:
- credentials reference set: name of an environment variable whose value is
  a service-account JSON document
- no reference: application-default credentials
"""

import asyncio
import json
import os
import threading
from typing import Any

import requests
from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from bucket_scaler.utils.logging import get_logger

from .base import AuthError, FetchError, FetchTimeoutError, MetricSource, RateLimitError

logger = get_logger(__name__)

DEFAULT_MAX_BUCKET_ITEMS_TO_SCAN = 1000


class GCSObjectCountSource(MetricSource):
    """
    Metric source backed by a GCS bucket listing.

    One client is created per credential reference and reused across fetches.
    """

    def __init__(
        self,
        project: str | None = None,
        blob_prefix: str | None = None,
        blob_delimiter: str | None = None,
        max_bucket_items_to_scan: int = DEFAULT_MAX_BUCKET_ITEMS_TO_SCAN,
        fetch_timeout: float | None = None,
    ) -> None:
        """
        Initialize the GCS source.

        Args:
            project: GCP project for the client (inferred when None)
            blob_prefix: Only count objects whose names start with this prefix
            blob_delimiter: Delimiter for directory-like listings
            max_bucket_items_to_scan: Upper bound on objects listed per fetch
            fetch_timeout: Per-request timeout for listing, with client-side
                retries disabled (library defaults when None)
        """
        super().__init__("gcs")
        if max_bucket_items_to_scan < 1:
            raise ValueError("max_bucket_items_to_scan must be >= 1")
        if fetch_timeout is not None and fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be > 0")

        self.project = project
        self.blob_prefix = blob_prefix
        self.blob_delimiter = blob_delimiter
        self.max_bucket_items_to_scan = max_bucket_items_to_scan
        self.fetch_timeout = fetch_timeout

        self._clients: dict[str | None, storage.Client] = {}
        # Listings run on worker threads
        self._clients_lock = threading.Lock()

    def _load_credentials_info(self, credentials: str) -> dict[str, Any]:
        raw = os.environ.get(credentials)
        if not raw:
            raise AuthError(f"Credentials environment variable {credentials} is not set")
        try:
            info = json.loads(raw)
        except json.JSONDecodeError as e:
            raise AuthError(
                f"Credentials in {credentials} are not valid JSON"
            ) from e
        if not isinstance(info, dict):
            raise AuthError(f"Credentials in {credentials} must be a JSON object")
        return info

    def _get_client(self, credentials: str | None) -> storage.Client:
        """Get or create the client for a credential reference."""
        with self._clients_lock:
            client = self._clients.get(credentials)
            if client is None:
                client = self._create_client(credentials)
                self._clients[credentials] = client
        return client

    def _create_client(self, credentials: str | None) -> storage.Client:
        try:
            if credentials:
                info = self._load_credentials_info(credentials)
                client = storage.Client.from_service_account_info(
                    info,
                    project=self.project or info.get("project_id"),
                )
            else:
                client = storage.Client(project=self.project)
        except (auth_exceptions.GoogleAuthError, ValueError) as e:
            raise AuthError(f"Could not load GCS credentials: {e}") from e

        logger.debug(
            "GCS client created",
            credentials_from_env=credentials,
            project=client.project,
        )
        return client

    def _count_objects(self, bucket_identifier: str, credentials: str | None) -> int:
        client = self._get_client(credentials)
        options: dict[str, Any] = {}
        if self.fetch_timeout is not None:
            # An abandoned fetch must not keep listing after its tick gave up
            options.update(timeout=self.fetch_timeout, retry=None)

        try:
            blobs = client.list_blobs(
                bucket_identifier,
                prefix=self.blob_prefix,
                delimiter=self.blob_delimiter,
                max_results=self.max_bucket_items_to_scan,
                **options,
            )
            return sum(1 for _ in blobs)

        except (gcp_exceptions.Unauthorized, gcp_exceptions.Forbidden) as e:
            raise AuthError(f"Access to bucket {bucket_identifier} denied: {e}") from e
        except auth_exceptions.GoogleAuthError as e:
            raise AuthError(f"GCS authentication failed: {e}") from e
        except gcp_exceptions.TooManyRequests as e:
            raise RateLimitError(f"GCS rate limited listing {bucket_identifier}") from e
        except gcp_exceptions.NotFound as e:
            raise FetchError(f"Bucket {bucket_identifier} not found") from e
        except gcp_exceptions.GoogleAPIError as e:
            raise FetchError(f"GCS listing of {bucket_identifier} failed: {e}") from e
        except requests.Timeout as e:
            raise FetchTimeoutError(
                f"GCS listing of {bucket_identifier} timed out after {self.fetch_timeout}s"
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"GCS listing of {bucket_identifier} failed: {e}") from e

    async def fetch_count(self, bucket_identifier: str, credentials: str | None) -> int:
        try:
            count = await asyncio.to_thread(
                self._count_objects, bucket_identifier, credentials
            )
        except FetchError as e:
            self.record_fetch(e)
            raise

        self.record_fetch()
        logger.debug("Bucket objects counted", bucket=bucket_identifier, count=count)
        return count

    async def close(self) -> None:
        with self._clients_lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()
