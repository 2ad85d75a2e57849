"""
Local state store.

Each managed resource is recorded under its address (``<kind>.<name>``) with
the opaque id and attributes produced by its controller.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from resources.base import ResourceData

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def make_address(kind: str, name: str) -> str:
    return f"{kind}.{name}"


def split_address(address: str) -> tuple[str, str]:
    """Split ``kind.name`` into its parts."""
    kind, sep, name = address.partition(".")
    if not sep or not kind or not name:
        raise ValueError(f"Invalid resource address '{address}'. Expected 'kind.name'")
    return kind, name


@dataclass
class ResourceState:
    """Persisted record of one resource."""

    kind: str
    name: str
    id: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str:
        return make_address(self.kind, self.name)

    def to_data(self) -> ResourceData:
        return ResourceData(id=self.id, attributes=dict(self.attributes))

    @classmethod
    def from_data(cls, kind: str, name: str, data: ResourceData) -> "ResourceState":
        return cls(kind=kind, name=name, id=data.id, attributes=dict(data.attributes))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id, "attributes": self.attributes}


class StateStore:
    """JSON-file backed collection of ResourceState records."""

    def __init__(self, path: str):
        self.path = path
        self._resources: Dict[str, ResourceState] = {}

    def load(self) -> "StateStore":
        """Load state from disk. A missing file is an empty state."""
        self._resources = {}
        if not os.path.exists(self.path):
            logger.debug(f"No state file at {self.path}, starting empty")
            return self

        with open(self.path, "r") as f:
            raw = json.load(f)

        version = raw.get("version")
        if version != STATE_VERSION:
            raise ValueError(
                f"Unsupported state file version {version!r} in {self.path}"
            )

        for address, entry in raw.get("resources", {}).items():
            _, name = split_address(address)
            self._resources[address] = ResourceState(
                kind=entry["kind"],
                name=name,
                id=entry.get("id", ""),
                attributes=entry.get("attributes", {}),
            )
        return self

    def save(self) -> None:
        """Write state atomically next to the target file."""
        payload = {
            "version": STATE_VERSION,
            "resources": {
                address: res.to_dict()
                for address, res in sorted(self._resources.items())
            },
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".opctl-state-")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def get(self, address: str) -> Optional[ResourceState]:
        return self._resources.get(address)

    def put(self, resource: ResourceState) -> None:
        self._resources[resource.address] = resource

    def remove(self, address: str) -> None:
        self._resources.pop(address, None)

    def addresses(self) -> List[str]:
        return sorted(self._resources.keys())

    def __iter__(self) -> Iterator[ResourceState]:
        return iter([self._resources[a] for a in self.addresses()])

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, address: str) -> bool:
        return address in self._resources
