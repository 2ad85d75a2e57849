"""
Resource Controller Base - Abstract interface for resource controllers.

A resource controller owns the CRUD protocol for one resource kind. Every
operation takes an explicit OnePassClient and the ResourceData of a single
resource instance, issues its backend calls, and writes the resulting id and
observed attributes back into the ResourceData.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from errors import NotFoundError
from opcli.client import OnePassClient

logger = logging.getLogger(__name__)


@dataclass
class ResourceData:
    """
    Persisted view of one resource instance.

    Holds exactly one opaque id plus the named attributes declared by the
    resource kind. An empty id means the resource does not exist.
    """

    id: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def set_id(self, resource_id: str) -> None:
        self.id = resource_id

    def clear_id(self) -> None:
        self.id = ""

    @property
    def exists(self) -> bool:
        return bool(self.id)


class ResourceController(ABC):
    """
    Abstract base class for resource controllers.

    Subclasses declare their kind, a JSON schema for the attributes they
    accept, and implement read/create/delete. Kinds that can be changed in
    place also implement update; attributes listed in ``force_new`` can only
    change by replacing the resource.
    """

    @property
    @abstractmethod
    def kind(self) -> str:
        """Unique resource kind name (e.g., 'onepassword_vault')."""
        pass

    @property
    @abstractmethod
    def schema(self) -> Dict[str, Any]:
        """JSON schema for the resource attributes."""
        pass

    @property
    def force_new(self) -> List[str]:
        """Attributes whose change requires delete-then-create."""
        return []

    @property
    def client_side(self) -> List[str]:
        """Attributes kept only in local state, never sent to the backend."""
        return []

    @property
    def create_only(self) -> List[str]:
        """Attributes that only matter when the resource is created."""
        return []

    @property
    def defaults(self) -> Dict[str, Any]:
        """Default attribute values, taken from the schema."""
        return {
            name: prop["default"]
            for name, prop in self.schema.get("properties", {}).items()
            if "default" in prop
        }

    def normalize(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Return attributes in the form reads store them, for comparison."""
        return dict(attributes)

    def new_data(self, attributes: Dict[str, Any]) -> ResourceData:
        """Create an id-less ResourceData with defaults applied."""
        merged = copy.deepcopy(self.defaults)
        merged.update(attributes)
        return ResourceData(attributes=merged)

    @abstractmethod
    async def read(self, client: OnePassClient, data: ResourceData) -> None:
        """
        Refresh ``data`` from the backend.

        Clears the id if the resource no longer exists.
        """
        pass

    @abstractmethod
    async def create(self, client: OnePassClient, data: ResourceData) -> None:
        """Create the resource described by ``data`` and read it back."""
        pass

    async def update(self, client: OnePassClient, data: ResourceData) -> None:
        """Apply in-place changes. Kinds without updatable attributes never get here."""
        raise NotImplementedError(f"{self.kind} does not support in-place update")

    @abstractmethod
    async def delete(self, client: OnePassClient, data: ResourceData) -> None:
        """Delete the resource and clear the id."""
        pass

    async def import_state(self, client: OnePassClient, resource_id: str) -> ResourceData:
        """
        Populate a ResourceData from an id alone.

        Raises:
            NotFoundError: If nothing exists under ``resource_id``.
        """
        data = ResourceData(id=resource_id, attributes=copy.deepcopy(self.defaults))
        await self.read(client, data)
        if not data.exists:
            raise NotFoundError(f"Cannot import non-existent {self.kind} '{resource_id}'")
        logger.info(f"Imported {self.kind} {data.id}")
        return data
