"""Provider payload and store row types, plus the mapping between them."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from ..config import CategoryTag


class RemoteRecord(BaseModel):
    """One item of a provider list page."""

    model_config = ConfigDict(extra="ignore", frozen=True, allow_inf_nan=False)

    id: int
    title: str = ""
    overview: str = ""
    release_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float = 0.0

    @field_validator("title", "overview", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("release_date", "poster_path", "backdrop_path", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("vote_average", mode="before")
    @classmethod
    def _default_rating(cls, value: Any) -> Any:
        return 0.0 if value is None else value


@dataclass(slots=True, frozen=True)
class NormalizedRecord:
    """Row shape written to the ``movies`` table."""

    id: int
    title: str
    overview: str
    release_date: str | None
    poster_path: str | None
    backdrop_path: str | None
    vote_average: float
    category: str | None = None

    def to_row(self, include_category: bool = False) -> dict[str, Any]:
        row = asdict(self)
        if not include_category:
            row.pop("category")
        return row


def expand_image_url(path: str | None, base_url: str | None) -> str | None:
    """Turn a provider-relative image path into an absolute URL."""

    if not path or not base_url:
        return path
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def normalize_record(
    remote: RemoteRecord,
    *,
    category: CategoryTag | str | None = None,
    image_base_url: str | None = None,
) -> NormalizedRecord:
    if isinstance(category, CategoryTag):
        category = category.value
    return NormalizedRecord(
        id=remote.id,
        title=remote.title,
        overview=remote.overview,
        release_date=remote.release_date,
        poster_path=expand_image_url(remote.poster_path, image_base_url),
        backdrop_path=expand_image_url(remote.backdrop_path, image_base_url),
        vote_average=remote.vote_average,
        category=category,
    )


__all__ = ["NormalizedRecord", "RemoteRecord", "expand_image_url", "normalize_record"]
