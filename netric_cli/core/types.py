"""
Core types for netric entities, groupings and collection queries.

These dataclasses carry the wire codecs: ``to_dict`` builds request payloads
and ``from_dict`` / ``apply_page`` turn responses back into typed objects.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

FVAL_SUFFIX = "_fval"

# =============================================================================
# Entity Types
# =============================================================================


@dataclass
class Entity:
    """
    A typed business object with an open set of fields.

    The id lives in ``values`` under ``id`` so that saving an existing
    entity sends it back to the server. An empty id means the entity has
    not been persisted yet.
    """

    obj_type: str
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, obj_type: str, id: str = "", **values: Any) -> "Entity":
        """Create an entity, optionally with an id and initial field values."""
        entity = cls(obj_type=obj_type)
        if id:
            entity.id = id
        for name, value in values.items():
            entity.set_value(name, value)
        return entity

    @property
    def id(self) -> str:
        return self.values.get("id") or ""

    @id.setter
    def id(self, value: str) -> None:
        self.values["id"] = value

    @property
    def is_new(self) -> bool:
        """Check if the entity has not been saved yet."""
        return not self.id

    def get_value(self, name: str, default: Any = None) -> Any:
        """Get a field value, or default if the field is not set."""
        return self.values.get(name, default)

    def set_value(self, name: str, value: Any) -> None:
        """Set a field value."""
        self.values[name] = value

    def update_from(self, data: dict[str, Any]) -> None:
        """Write every field in ``data`` onto this entity, verbatim."""
        for name, value in data.items():
            if name == "obj_type":
                self.obj_type = value
            else:
                self.set_value(name, value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request."""
        data: dict[str, Any] = {"obj_type": self.obj_type}
        data.update(self.values)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Entity | None":
        """
        Create from API response dict.

        Returns None when the payload is not a mapping or lacks ``obj_type``
        or ``id``. Reference fields come back with a ``<name>_fval`` sibling
        holding the resolved display value; that value replaces the raw one
        and the ``_fval`` keys themselves are dropped.
        """
        if not isinstance(data, dict) or data.get("obj_type") is None or data.get("id") is None:
            return None

        entity = cls(obj_type=data["obj_type"])
        for name, value in data.items():
            if name == "obj_type" or name.endswith(FVAL_SUFFIX):
                continue
            fval_name = name + FVAL_SUFFIX
            if data.get(fval_name) is not None:
                value = data[fval_name]
            entity.set_value(name, value)
        return entity


# =============================================================================
# Grouping Types
# =============================================================================


# Wire names that map to different attribute names on a grouping
GROUPING_FIELD_RENAMES = {
    "heiarch": "isHeiarch",
    "parent_id": "parentId",
    "sort_order": "sortOrder",
}


@dataclass
class EntityGrouping:
    """A node in the grouping tree of one field of one object type."""

    values: dict[str, Any] = field(default_factory=dict)
    children: list["EntityGrouping"] = field(default_factory=list)

    @property
    def id(self) -> Any:
        return self.values.get("id")

    @property
    def name(self) -> str:
        return self.values.get("name") or ""

    @property
    def is_heiarch(self) -> bool:
        return bool(self.values.get("isHeiarch"))

    @property
    def parent_id(self) -> Any:
        return self.values.get("parentId")

    @property
    def sort_order(self) -> int:
        return self.values.get("sortOrder") or 0

    def get_value(self, name: str, default: Any = None) -> Any:
        """Get a field value, or default if the field is not set."""
        return self.values.get(name, default)

    def set_value(self, name: str, value: Any) -> None:
        """Set a field value."""
        self.values[name] = value

    def walk(self, depth: int = 0) -> Iterator[tuple[int, "EntityGrouping"]]:
        """Yield ``(depth, grouping)`` for this node and its descendants, depth first."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EntityGrouping":
        """Create from API response dict, decoding children recursively."""
        grouping = cls()
        for name, value in data.items():
            if name == "children":
                continue
            grouping.set_value(GROUPING_FIELD_RENAMES.get(name, name), value)

        if data.get("children"):
            grouping.children = cls.from_list(data["children"])
        return grouping

    @classmethod
    def from_list(cls, data: Any) -> list["EntityGrouping"]:
        """
        Decode a list of raw grouping nodes, preserving order.

        An empty payload, an error payload, or anything that is not a list
        decodes to an empty list.
        """
        if not data or not isinstance(data, list):
            if isinstance(data, dict) and "error" in data:
                logger.warning("Grouping payload carried an error: %s", data["error"])
            return []

        return [cls.from_dict(item) for item in data if isinstance(item, dict)]


# =============================================================================
# Collection Types
# =============================================================================


@dataclass
class Condition:
    """A single filter term in a collection query."""

    field_name: str
    operator: str
    value: Any = None
    blogic: str = "and"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request."""
        return {
            "blogic": self.blogic,
            "field_name": self.field_name,
            "operator": self.operator,
            "value": self.value,
        }


@dataclass
class EntityCollection:
    """A paginated, filtered, ordered query over entities of one type."""

    obj_type: str
    offset: int = 0
    limit: int = 100
    conditions: list[Condition] = field(default_factory=list)
    order_by: list[dict[str, str]] = field(default_factory=list)
    entities: list[Entity] = field(default_factory=list)
    total_num: int = 0

    def where(self, field_name: str, operator: str, value: Any, blogic: str = "and") -> "EntityCollection":
        """Add a condition and return self for chaining."""
        self.conditions.append(Condition(field_name=field_name, operator=operator, value=value, blogic=blogic))
        return self

    def order(self, field_name: str, direction: str = "asc") -> "EntityCollection":
        """Add a sort field and return self for chaining."""
        self.order_by.append({"field_name": field_name, "direction": direction})
        return self

    def clear_entities(self) -> None:
        """Drop the entities of the current page."""
        self.entities = []

    def add_entity(self, entity: Entity) -> None:
        """Append an entity to the current page."""
        self.entities.append(entity)

    @property
    def has_more(self) -> bool:
        """Check if there are more results after the current page."""
        return self.offset + len(self.entities) < self.total_num

    def next_page(self) -> None:
        """Advance the offset by one page."""
        self.offset += self.limit

    def to_dict(self) -> dict[str, Any]:
        """Convert to the query payload for API request."""
        return {
            "obj_type": self.obj_type,
            "offset": self.offset,
            "limit": self.limit,
            "conditions": [condition.to_dict() for condition in self.conditions],
            "order_by": self.order_by,
        }

    def apply_page(self, data: dict[str, Any]) -> int:
        """
        Replace the loaded entities with one page of query results.

        Args:
            data: Query response with total_num, num and entities

        Returns:
            Number of entities the server reported for this page

        """
        self.clear_entities()
        self.total_num = int(data.get("total_num") or 0)

        for entity_data in data.get("entities") or []:
            entity = Entity.from_dict(entity_data)
            if entity is None:
                logger.debug("Skipping %s result without obj_type or id", self.obj_type)
                continue
            self.add_entity(entity)

        num = data.get("num")
        if num is None:
            return len(self.entities)
        return int(num)
