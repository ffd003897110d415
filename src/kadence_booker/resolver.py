from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterable, Iterator, Mapping, Protocol
from urllib.parse import quote

from .entities import first_field, get_entity_id, normalize, to_members
from .errors import EntityNotFound, ResolutionFailed


logger = logging.getLogger(__name__)

SPACE_TYPE_FIELDS = ("spaceType", "type", "category")


class ApiReader(Protocol):
    def get(self, path: str, query: Mapping[str, Any] | None = None) -> Any: ...


@dataclass(frozen=True)
class ListingStrategy:
    """One request shape for listing a collection under a parent.

    `path` may reference the parent as `{parent}`; when `query_key` is set the
    parent is also sent as that query parameter.
    """

    name: str
    path: str
    query_key: str | None = None

    def fetch(self, client: ApiReader, parent: str) -> list[dict[str, Any]]:
        path = self.path.format(parent=quote(parent, safe=""))
        query = {self.query_key: parent} if self.query_key else None
        return to_members(client.get(path, query))


USER_STRATEGIES: tuple[ListingStrategy, ...] = (
    ListingStrategy("users-by-email", "/users", query_key="email"),
    ListingStrategy("all-users", "/users"),
)

FLOOR_STRATEGIES: tuple[ListingStrategy, ...] = (
    ListingStrategy("floors-by-building-param", "/floors", query_key="building.id"),
    ListingStrategy("floors-nested-under-building", "/buildings/{parent}/floors"),
)

SPACE_STRATEGIES: tuple[ListingStrategy, ...] = (
    ListingStrategy("spaces-by-floor-param", "/spaces", query_key="floor.id"),
    ListingStrategy("spaces-nested-under-floor", "/floors/{parent}/spaces"),
)


def space_type_matches(space: dict[str, Any], space_type: str | None) -> bool:
    # Spaces that carry no type field at all satisfy any filter.
    if not normalize(space_type):
        return True
    value = first_field(space, SPACE_TYPE_FIELDS)
    if value is None:
        return True
    if isinstance(value, dict):
        value = value.get("name") or value.get("type")
    return normalize(value) == normalize(space_type)


def _find(members: Iterable[dict[str, Any]], wanted: str, keys: tuple[str, ...]) -> dict[str, Any] | None:
    target = normalize(wanted)
    for member in members:
        if any(normalize(member.get(k)) == target for k in keys):
            return member
    return None


@dataclass
class EntityResolver:
    client: ApiReader
    user_strategies: tuple[ListingStrategy, ...] = USER_STRATEGIES
    floor_strategies: tuple[ListingStrategy, ...] = FLOOR_STRATEGIES
    space_strategies: tuple[ListingStrategy, ...] = SPACE_STRATEGIES

    def _list(self, strategies: Iterable[ListingStrategy], parent: str, what: str) -> list[dict[str, Any]]:
        return next(self._listings(strategies, parent, what))

    def _listings(self, strategies: Iterable[ListingStrategy], parent: str, what: str) -> Iterator[list[dict[str, Any]]]:
        """Yield each listing that succeeds, in strategy order.

        Raises ResolutionFailed when every strategy failed to list.
        """
        errors: list[dict[str, Any]] = []
        listed = False
        for strategy in strategies:
            try:
                members = strategy.fetch(self.client, parent)
            except Exception as e:
                errors.append({"strategy": strategy.name, "error": str(e)})
                logger.debug("Listing %s via %s failed: %s", what, strategy.name, e)
                continue
            listed = True
            yield members
        if not listed:
            last = errors[-1]["error"] if errors else "no listing strategies configured"
            raise ResolutionFailed(f"Unable to list {what}: {last}", errors=errors)

    def resolve_user(self, email: str) -> dict[str, Any]:
        # A server-side email filter may be exact, so an empty filtered
        # listing falls through to the next strategy.
        wanted = email.strip()
        for users in self._listings(self.user_strategies, wanted, f"users for {wanted}"):
            found = _find(users, wanted, ("email", "primaryEmail"))
            if found is not None:
                return found
        raise EntityNotFound(f"User not found by email: {wanted}")

    def resolve_building(self, name: str) -> dict[str, Any]:
        buildings = to_members(self.client.get("/buildings"))
        found = _find(buildings, name, ("name",))
        if found is None:
            raise EntityNotFound(f"Building not found: {name}")
        return found

    def resolve_floor(self, building_id: str, name: str) -> dict[str, Any]:
        floors = self._list(self.floor_strategies, building_id, f"floors for building {building_id}")
        found = _find(floors, name, ("name",))
        if found is None:
            raise EntityNotFound(f"Floor not found: {name} (building {building_id})")
        return found

    def resolve_space(self, floor_id: str, name: str, space_type: str | None = None) -> dict[str, Any]:
        spaces = self._list(self.space_strategies, floor_id, f"spaces for floor {floor_id}")
        eligible = [s for s in spaces if space_type_matches(s, space_type)]
        found = _find(eligible, name, ("name", "displayName"))
        if found is None:
            suffix = f", type {space_type}" if normalize(space_type) else ""
            raise EntityNotFound(f"Space not found: {name} (floor {floor_id}{suffix})")
        return found


def resolved_id(entity: dict[str, Any], what: str) -> str:
    entity_id = get_entity_id(entity)
    if not entity_id:
        raise ResolutionFailed(f"{what} record has no usable identifier: {entity.get('name')!r}")
    return entity_id
