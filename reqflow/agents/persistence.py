"""
Client for the remote request store.

The store is opaque to reqflow; it is consumed through three calls:
  GET   {base_url}/requests          -> [Request, ...]
  POST  {base_url}/requests          -> Request
  PATCH {base_url}/requests/{id}     -> ack

Any non-success response is a NetworkError. Status codes are not
interpreted further: the caller rolls back and reports.

No version token is sent with PATCH, so concurrent sessions writing the
same request get last-write-wins.
"""

import logging
from typing import Optional

import httpx

from reqflow.lib.config import PersistenceConfig
from reqflow.lib.models import Request
from reqflow.lib.validate import ValidationError

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """Persistence call failed."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class PersistenceClient:
    """Async client for the persistence collaborator."""

    def __init__(self, config: PersistenceConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, operation: str, method: str, url: str, payload: Optional[dict] = None) -> httpx.Response:
        try:
            response = await self._client.request(method, url, json=payload)
        except httpx.HTTPError as e:
            raise NetworkError(operation, str(e) or type(e).__name__) from e
        if response.is_error:
            raise NetworkError(operation, f"HTTP {response.status_code}", response.status_code)
        return response

    async def list(self) -> list[Request]:
        """Fetch all requests. Records that fail validation are skipped (logged)."""
        response = await self._send("list", "GET", "/requests")
        try:
            records = response.json()
        except ValueError as e:
            raise NetworkError("list", f"invalid JSON body: {e}") from None
        if not isinstance(records, list):
            raise NetworkError("list", f"expected a list, got {type(records).__name__}")

        requests = []
        for record in records:
            try:
                requests.append(Request.from_dict(record))
            except (ValidationError, KeyError, ValueError, TypeError) as e:
                record_id = record.get("id", "?") if isinstance(record, dict) else "?"
                logger.warning(f"Skipping invalid request record {record_id}: {e}")
        return requests

    async def create(self, request: Request) -> Request:
        """Store a new request and return the stored version."""
        response = await self._send("create", "POST", "/requests", request.to_dict())
        try:
            return Request.from_dict(response.json())
        except (ValidationError, KeyError, ValueError, TypeError) as e:
            # Stored, but the echo is unusable; keep what we sent.
            logger.warning(f"Create of {request.id} returned an unreadable body: {e}")
            return request

    async def patch(self, request_id: str, partial: dict) -> None:
        """Apply a partial update to one request."""
        await self._send("patch", "PATCH", f"/requests/{request_id}", partial)
