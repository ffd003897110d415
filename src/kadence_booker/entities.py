"""Helpers for the loosely-shaped JSON records the Kadence API returns."""
from __future__ import annotations

from typing import Any


def to_members(data: Any) -> list[dict[str, Any]]:
    """Unwrap a collection response.

    Accepts a plain array, a Hydra collection (`hydra:member`) or an
    `items`-keyed object. Anything else is treated as an empty collection.
    """
    if not data:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("hydra:member"), list):
            return data["hydra:member"]
        if isinstance(data.get("items"), list):
            return data["items"]
    return []


def normalize(value: Any) -> str:
    return str(value if value is not None else "").strip().lower()


def extract_id_from_iri(iri_or_id: Any) -> str | None:
    # "/v1/public/spaces/abc?x=1" -> "abc"
    if iri_or_id is None:
        return None
    text = str(iri_or_id)
    if not text:
        return None
    parts = [p for p in text.split("?", 1)[0].split("/") if p]
    return parts[-1] if parts else text


def get_entity_id(entity: dict[str, Any] | None) -> str | None:
    if not entity:
        return None
    for candidate in (
        entity.get("id"),
        extract_id_from_iri(entity.get("@id")),
        entity.get("identifier"),
        entity.get("uuid"),
    ):
        if candidate not in (None, ""):
            return str(candidate)
    return None


def first_field(entity: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = entity.get(key)
        if value not in (None, ""):
            return value
    return None
