"""
Hosted Table API Client

Async HTTP client for the hosted database platform's REST table API
(PostgREST conventions: ``?column=eq.value`` filters, ``order``/``limit``
query parameters, upserts through ``Prefer: resolution=merge-duplicates``).

Usage:
    async with TableApiClient(base_url, api_key) as client:
        rows = await client.select("learning_lessons", {"book_id": "eq.1"})
        await client.upsert("user_lesson_progress", row, on_conflict="user_id,lesson_id")
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from progression.core.errors import RemoteSyncError


class TableApiClient:
    """
    HTTP client for the hosted table API.

    Failures (connection errors, non-2xx responses) are raised as
    RemoteSyncError; callers decide whether they are fatal.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "TableApiClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json", "Accept": "application/json"}
            if self.api_key:
                headers["apikey"] = self.api_key
            token = self.access_token or self.api_key
            if token:
                headers["Authorization"] = f"Bearer {token}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.is_success:
            return
        try:
            detail = response.json()
        except ValueError:
            detail = response.text
        if isinstance(detail, dict):
            detail = detail.get("message") or detail.get("detail") or detail
        raise RemoteSyncError(f"{what} failed ({response.status_code}): {detail}", response.status_code)

    @staticmethod
    def _parse_rows(response: httpx.Response, what: str) -> list[dict[str, Any]]:
        """Decode a successful response body as a list of row objects."""
        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteSyncError(f"{what} returned a non-JSON body: {e}", response.status_code) from e
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise RemoteSyncError(f"{what} returned {type(rows).__name__}, expected a list of rows", response.status_code)
        return rows

    # =========================================================================
    # Table Operations
    # =========================================================================

    async def select(
        self,
        table: str,
        filters: dict[str, str] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Select rows from a table.

        Args:
            table: Table name
            filters: Column filters in operator form, e.g. {"book_id": "eq.1"}
            columns: Column list, may embed related tables
            order: Ordering, e.g. "order_index.asc"
            limit: Maximum number of rows

        Returns:
            List of row dictionaries
        """
        params: dict[str, Any] = {"select": columns, **(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit

        try:
            client = await self._ensure_client()
            response = await client.get(f"/{table}", params=params)
        except httpx.RequestError as e:
            raise RemoteSyncError(f"Connection error selecting from {table}: {e}") from e

        self._raise_for_status(response, f"Select from {table}")
        rows = self._parse_rows(response, f"Select from {table}")
        logger.debug(f"Selected {len(rows)} rows from {table}")
        return rows

    async def upsert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        on_conflict: str,
    ) -> list[dict[str, Any]]:
        """Insert rows, merging into existing rows on the conflict columns."""
        try:
            client = await self._ensure_client()
            response = await client.post(
                f"/{table}",
                params={"on_conflict": on_conflict},
                json=rows,
                headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            )
        except httpx.RequestError as e:
            raise RemoteSyncError(f"Connection error upserting into {table}: {e}") from e

        self._raise_for_status(response, f"Upsert into {table}")
        if not response.content:
            return []
        return self._parse_rows(response, f"Upsert into {table}")

    # =========================================================================
    # Health Check
    # =========================================================================

    async def health_check(self) -> bool:
        """Check if the table API is reachable."""
        try:
            client = await self._ensure_client()
            response = await client.get("/", timeout=5.0)
            return response.status_code < 500
        except (httpx.RequestError, asyncio.TimeoutError):
            return False
