"""Async client for the Supabase REST (PostgREST) entity store."""

import asyncio
from typing import Any

import httpx
import structlog

from comex_ledger.config import get_settings
from comex_ledger.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    StoreError,
)
from comex_ledger.store.query import Query

logger = structlog.get_logger(__name__)

# Postgres / PostgREST error codes the services rely on
UNIQUE_VIOLATION = "23505"
NO_ROWS_FOR_SINGLE = "PGRST116"

SINGLE_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"


class StoreClient:
    """Async client issuing select/insert/update/delete calls over HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.rest_url).rstrip("/")
        self._api_key = api_key or settings.supabase_key.get_secret_value()
        self._timeout = timeout if timeout is not None else settings.store_timeout
        self._max_retries = (
            max_retries if max_retries is not None else settings.store_max_retries
        )
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "StoreClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with the API key."""
        return {
            "Content-Type": "application/json",
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }

    def table(self, name: str) -> Query:
        """Start a query against a named relation."""
        return Query(self, name)

    # === Execution ===

    async def execute(self, query: Query) -> Any:
        """Run a query and return rows, a single row, or a count."""
        headers = self._get_headers()
        if query.expect_single:
            headers["Accept"] = SINGLE_OBJECT_MEDIA_TYPE
        if query.count_only:
            headers["Prefer"] = "count=exact"
        elif query.method in ("POST", "PATCH", "DELETE"):
            headers["Prefer"] = "return=representation"

        response = await self._request(
            query.method,
            f"/{query.table}",
            params=query.to_params(),
            json=query.payload,
            headers=headers,
        )

        if query.count_only:
            return self._parse_count(response)
        if not response.content:
            return None if query.expect_single else []
        return response.json()

    async def _request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        retry_count: int = 0,
    ) -> httpx.Response:
        """Make a request with retry logic for transport failures."""
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                logger.warning(
                    "store_request_retry",
                    method=method,
                    path=path,
                    attempt=retry_count + 1,
                    error=str(e),
                )
                await asyncio.sleep(2**retry_count)  # Exponential backoff
                return await self._request(
                    method, path, params, json, headers, retry_count + 1
                )
            raise StoreError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        logger.debug("store_request", method=method, path=path, status=response.status_code)
        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> StoreError | ConflictError | NotFoundError:
        """Translate an error response into the matching exception."""
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"raw": response.text[:500] if response.text else "empty response"}
        if not isinstance(body, dict):
            body = {"raw": body}

        code = body.get("code")
        message = body.get("message") or f"Store error: {response.status_code}"
        status = response.status_code

        if code == UNIQUE_VIOLATION:
            return ConflictError(message, status_code=status, code=code, details=body)
        if code == NO_ROWS_FOR_SINGLE:
            return NotFoundError(message, status_code=status, code=code, details=body)
        if status in (401, 403):
            return AuthenticationError(message, status_code=status, code=code, details=body)
        if status == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            return RateLimitError(
                f"Rate limited, retry after {retry_after}s",
                status_code=status,
                code=code,
                details={"retry_after": retry_after},
            )
        return StoreError(message, status_code=status, code=code, details=body)

    @staticmethod
    def _parse_count(response: httpx.Response) -> int:
        """Read the total from a ``Content-Range: 0-9/42`` header."""
        content_range = response.headers.get("Content-Range", "")
        _, _, total = content_range.partition("/")
        if not total or total == "*":
            raise StoreError(
                "Missing row count in response",
                status_code=response.status_code,
                details={"content_range": content_range},
            )
        return int(total)
