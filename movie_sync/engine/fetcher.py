"""HTTP page retrieval against the remote metadata provider."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from ..config import CategoryTag, ProviderConfig
from ..errors import FetchError
from ..logging_conf import get_logger
from .records import RemoteRecord


@dataclass(slots=True)
class CategoryPage:
    """One decoded provider page."""

    category: CategoryTag
    page: int
    total_pages: int | None
    results: list[RemoteRecord] = field(default_factory=list)


class PageFetcher:
    """Fetch single category pages; never retries, failures surface as ``FetchError``."""

    def __init__(
        self,
        config: ProviderConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or get_logger("fetcher")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers={"Accept": "application/json"},
        )

    def __enter__(self) -> "PageFetcher":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch_page(self, category: CategoryTag, page: int) -> CategoryPage:
        params = {
            "api_key": self.config.api_key,
            "language": self.config.language,
            "page": page,
        }
        try:
            response = self._client.get(
                f"{self.config.base_url}/movie/{category.value}",
                params=params,
                timeout=self.config.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise FetchError(category.value, page, f"{type(exc).__name__}: {exc}") from exc

        if self._is_failure(response):
            raise FetchError(category.value, page, f"Unexpected status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(category.value, page, "Response body is not JSON") from exc
        if not isinstance(payload, dict):
            raise FetchError(category.value, page, "Response payload is not an object")

        raw_results = payload.get("results", [])
        if not isinstance(raw_results, list):
            raise FetchError(category.value, page, "results is not a list")
        try:
            results = [RemoteRecord.model_validate(item) for item in raw_results]
        except ValidationError as exc:
            raise FetchError(category.value, page, f"Malformed record: {exc}") from exc

        total_pages = self._coerce_total_pages(payload.get("total_pages"))
        if total_pages is None:
            self.logger.debug(
                "total_pages_invalid",
                category=category.value,
                page=page,
                value=payload.get("total_pages"),
            )
        return CategoryPage(
            category=category,
            page=page,
            total_pages=total_pages,
            results=results,
        )

    @staticmethod
    def _coerce_total_pages(value: Any) -> int | None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if not math.isfinite(value) or value < 0 or value != int(value):
            return None
        return int(value)

    @staticmethod
    def _is_failure(response: httpx.Response) -> bool:
        return not 200 <= response.status_code < 300


__all__ = ["CategoryPage", "PageFetcher"]
