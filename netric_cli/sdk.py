"""
netric SDK - High-level client for entity operations.

This layer provides a clean, typed interface for saving, loading and querying
entities. Built on top of the core APIClient.
"""

import logging
from collections.abc import Iterator
from typing import Any

from netric_cli.core.client import APIClient, PreconditionError, RetrievalError
from netric_cli.core.types import Condition, Entity, EntityCollection, EntityGrouping

logger = logging.getLogger(__name__)


class ApiCaller:
    """
    High-level netric API client with typed methods.

    Example:
        api = ApiCaller("https://test.netric.com", app_id, app_key)

        # Save a new entity
        task = Entity.create("task", name="Write report")
        api.save_entity(task)

        # Query entities
        collection = EntityCollection("task").where("done", "is_equal", False)
        api.load_collection(collection)

    """

    def __init__(
        self,
        server: str | None = None,
        application_id: str | None = None,
        application_key: str | None = None,
        timeout: int = 60,
        verify_ssl: bool = True,
    ):
        """
        Initialize the netric client.

        Args:
            server: Server base URL (or NETRIC_SERVER env var)
            application_id: Application id (or NETRIC_APP_ID env var)
            application_key: Application private key (or NETRIC_APP_KEY env var)
            timeout: Request timeout in seconds
            verify_ssl: Verify the server certificate

        """
        self._client = APIClient(
            server=server,
            application_id=application_id,
            application_key=application_key,
            timeout=timeout,
            verify_ssl=verify_ssl,
        )

    @property
    def client(self) -> APIClient:
        """The underlying transport."""
        return self._client

    # =========================================================================
    # Entities
    # =========================================================================

    def save_entity(self, entity: Entity) -> bool:
        """
        Save a new or existing entity.

        Every field the server returns is written back onto ``entity``, so
        generated ids and timestamps are visible without a reload.

        Args:
            entity: The entity to save

        Returns:
            True on success, False if the server did not return the saved entity

        """
        result = self._client.post("entity", "save", entity.to_dict())

        if not isinstance(result, dict):
            logger.warning("Save of %s returned no entity data", entity.obj_type)
            return False
        if "error" in result:
            logger.warning("Save of %s failed: %s", entity.obj_type, result["error"])
            return False

        entity.update_from(result)
        return True

    def delete_entity(self, entity: Entity) -> bool:
        """
        Delete an entity.

        Args:
            entity: A previously saved entity

        Returns:
            True if the server reported the entity removed

        Raises:
            PreconditionError: If the entity has no id or type

        """
        if not entity.id or not entity.obj_type:
            raise PreconditionError("Cannot delete an entity that does not yet exist")

        result = self._client.post("entity", "remove", {"obj_type": entity.obj_type, "ids": entity.id})
        return isinstance(result, list) and len(result) > 0

    def get_entity(self, obj_type: str, entity_id: str) -> Entity | None:
        """
        Get an entity by id.

        Args:
            obj_type: Object type name, like 'user'
            entity_id: Unique id of the entity

        Returns:
            The populated entity, or None if it does not exist

        Raises:
            RetrievalError: If the server returned an error payload

        """
        result = self._client.get("entity", "get", {"obj_type": obj_type, "id": entity_id})

        entity = Entity.from_dict(result)
        if entity is not None:
            return entity
        if isinstance(result, dict) and "error" in result:
            raise RetrievalError(f"Could not get entity: {result['error']}", details=result)
        return None

    def get_entity_by_unique_name(
        self,
        obj_type: str,
        uname: str,
        namespace_conditions: list[Condition] | list[dict[str, Any]] | None = None,
    ) -> Entity | None:
        """
        Get an entity by its unique name.

        Args:
            obj_type: Object type name, like 'user'
            uname: The unique name of the entity
            namespace_conditions: Optional conditions that scope the name

        Returns:
            The populated entity, or None if nothing matched

        """
        conditions = [c.to_dict() if isinstance(c, Condition) else c for c in namespace_conditions or []]
        data = {"obj_type": obj_type, "uname": uname, "uname_conditions": conditions}
        # Conditions are nested objects, so they travel in a JSON body
        result = self._client.post("entity", "get", data)
        return Entity.from_dict(result)

    def get_entity_groupings(self, obj_type: str, field_name: str) -> list[EntityGrouping]:
        """
        Get the grouping tree for a field.

        Args:
            obj_type: Object type name
            field_name: Field whose groupings to load

        Returns:
            Top-level groupings with their children populated

        """
        if not obj_type or not field_name:
            return []

        result = self._client.get("entity", "get-groupings", {"obj_type": obj_type, "field_name": field_name})
        if isinstance(result, dict) and "groups" in result:
            return EntityGrouping.from_list(result["groups"])
        return []

    # =========================================================================
    # Collections
    # =========================================================================

    def load_collection(self, collection: EntityCollection) -> int:
        """
        Run the collection query and load the current page into it.

        Args:
            collection: Collection to query; its entities are replaced

        Returns:
            Number of entities in the page (fewer than limit on the last page)

        Raises:
            RetrievalError: If the server returned an error payload

        """
        result = self._client.post("entity-query", "execute", collection.to_dict())

        if isinstance(result, dict) and "error" in result:
            raise RetrievalError(f"Could not query {collection.obj_type}: {result['error']}", details=result)
        if not isinstance(result, dict):
            logger.warning("Query for %s returned no results payload", collection.obj_type)
            result = {}

        return collection.apply_page(result)

    def iterate_collection(self, collection: EntityCollection) -> Iterator[Entity]:
        """
        Iterate through every page of a collection query.

        Args:
            collection: Collection to query, starting at its current offset

        Yields:
            Entity objects in server order

        """
        while True:
            num = self.load_collection(collection)
            yield from list(collection.entities)

            if num < collection.limit or not collection.entities:
                break
            collection.next_page()
