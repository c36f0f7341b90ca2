"""Supabase (PostgREST) bulk upsert over HTTP."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from ...errors import PersistError
from ...logging_conf import get_logger
from .base import BaseStore


class SupabaseStore(BaseStore):
    """Send each batch as a single PostgREST bulk upsert.

    PostgREST executes a bulk insert as one statement, so the batch is applied
    entirely or not at all.
    """

    def __init__(
        self,
        url: str,
        key: str,
        table: str = "movies",
        category_column: bool = False,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        super().__init__(category_column=category_column)
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.table = table
        self.timeout = timeout
        self.logger = logger or get_logger("supabase_store")
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates,return=minimal",
        }
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def _write(self, rows: list[dict[str, Any]]) -> None:
        try:
            # NaN and Infinity have no JSON form
            body = json.dumps(rows, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise PersistError(f"Unserializable batch: {exc}", batch_size=len(rows)) from exc
        try:
            response = self._client.post(
                self.endpoint,
                params={"on_conflict": "id"},
                content=body,
                headers=self._headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise PersistError(f"{type(exc).__name__}: {exc}", batch_size=len(rows)) from exc
        if not response.is_success:
            raise PersistError(
                f"status {response.status_code}: {response.text[:200]}",
                batch_size=len(rows),
            )
        self.logger.debug("supabase_upsert", table=self.table, rows=len(rows))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = ["SupabaseStore"]
