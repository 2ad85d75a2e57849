"""
Reconciler - plans and applies a manifest of desired resources.

Compares the desired resources against the local state (refreshed from the
backend) and drives each resource's controller. Resources are processed one
at a time: applies in manifest order, then deletes of resources that are no
longer desired. A failed resource is recorded and the run moves on; nothing
is retried.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from errors import BackendError, OperatorError
from opcli.client import OnePassClient
from resources.base import ResourceController, ResourceData
from resources.registry import ResourceRegistry
from resources.relationship import RelationshipController
from state import ResourceState, StateStore, make_address, split_address
from validation import validate_attributes, validate_manifest

logger = logging.getLogger(__name__)


class ManifestError(ValueError):
    """The manifest document is invalid."""


class PlanAction(Enum):
    """Action the reconciler will take for one resource."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "noop"


@dataclass
class DesiredResource:
    """One entry of a manifest."""

    kind: str
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str:
        return make_address(self.kind, self.name)


@dataclass
class PlanEntry:
    """Planned action for one resource address."""

    address: str
    kind: str
    name: str
    action: PlanAction
    desired: Optional[Dict[str, Any]] = None
    changes: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)


@dataclass
class ReconcileResult:
    """Result of applying one plan entry."""

    address: str
    action: PlanAction
    success: bool = False
    message: str = ""
    resource_id: str = ""
    duration_seconds: Optional[float] = None


def parse_manifest(
    document: Any, registry: ResourceRegistry
) -> List[DesiredResource]:
    """
    Turn a manifest document into desired resources.

    Raises:
        ManifestError: If the document, a kind, or any attributes are invalid,
            or an address appears twice.
    """
    is_valid, error = validate_manifest(document)
    if not is_valid:
        raise ManifestError(f"Invalid manifest: {error}")

    resources: List[DesiredResource] = []
    seen = set()
    for entry in document["resources"]:
        kind = entry["kind"]
        try:
            controller = registry.get(kind)
        except ValueError as e:
            raise ManifestError(str(e)) from e

        desired = DesiredResource(
            kind=kind,
            name=entry["name"],
            attributes=entry.get("attributes") or {},
        )
        if desired.address in seen:
            raise ManifestError(f"Duplicate resource address: {desired.address}")
        seen.add(desired.address)

        is_valid, error = validate_attributes(desired.attributes, controller.schema)
        if not is_valid:
            raise ManifestError(f"{desired.address}: {error}")

        resources.append(desired)
    return resources


class Reconciler:
    """
    Drives resource controllers against a state store.

    The client handle is passed explicitly to every controller call.
    """

    def __init__(
        self,
        client: OnePassClient,
        registry: ResourceRegistry,
        state: StateStore,
    ):
        self.client = client
        self.registry = registry
        self.state = state

    def _persist(self, kind: str, name: str, data: ResourceData) -> None:
        address = make_address(kind, name)
        if data.exists:
            self.state.put(ResourceState.from_data(kind, name, data))
        else:
            self.state.remove(address)
        self.state.save()

    async def refresh(self) -> List[str]:
        """
        Re-read every resource in state.

        Resources that disappeared at the backend keep their state entry with
        an empty id, so the next plan re-creates them.

        Returns:
            Addresses whose id changed or was cleared during the refresh.
        """
        drifted: List[str] = []
        for resource in list(self.state):
            if not resource.id:
                continue
            controller = self.registry.get(resource.kind)
            data = resource.to_data()
            await controller.read(self.client, data)

            if data.id != resource.id:
                drifted.append(resource.address)
                if not data.exists:
                    logger.warning(f"{resource.address} was removed outside of opctl")
            self.state.put(ResourceState.from_data(resource.kind, resource.name, data))
        self.state.save()
        return drifted

    def _diff(
        self,
        controller: ResourceController,
        desired: Dict[str, Any],
        current: Dict[str, Any],
    ) -> Dict[str, Tuple[Any, Any]]:
        wanted = controller.normalize(desired)
        observed = controller.normalize(current)
        changes = {}
        for key, value in wanted.items():
            if key in controller.create_only:
                continue
            if observed.get(key) != value:
                changes[key] = (current.get(key), desired.get(key, value))
        return changes

    def plan(self, desired: List[DesiredResource]) -> List[PlanEntry]:
        """Compute actions for the desired resources against current state."""
        entries: List[PlanEntry] = []
        desired_addresses = set()

        for resource in desired:
            desired_addresses.add(resource.address)
            controller = self.registry.get(resource.kind)
            attributes = controller.new_data(resource.attributes).attributes
            current = self.state.get(resource.address)

            if current is None or not current.id:
                action = PlanAction.CREATE
                changes: Dict[str, Tuple[Any, Any]] = {}
            else:
                changes = self._diff(controller, attributes, current.attributes)
                if not changes:
                    action = PlanAction.NOOP
                elif any(key in controller.force_new for key in changes):
                    action = PlanAction.REPLACE
                else:
                    action = PlanAction.UPDATE

            entries.append(
                PlanEntry(
                    address=resource.address,
                    kind=resource.kind,
                    name=resource.name,
                    action=action,
                    desired=attributes,
                    changes=changes,
                )
            )

        orphans = [r for r in self.state if r.address not in desired_addresses]
        entries.extend(self._plan_deletes(orphans))
        return entries

    def _plan_deletes(self, resources: List[ResourceState]) -> List[PlanEntry]:
        # Memberships go before the entities they point at
        def order(resource: ResourceState) -> Tuple[int, str]:
            controller = self.registry.get(resource.kind)
            is_relationship = isinstance(controller, RelationshipController)
            return (0 if is_relationship else 1, resource.address)

        return [
            PlanEntry(
                address=resource.address,
                kind=resource.kind,
                name=resource.name,
                action=PlanAction.DELETE,
            )
            for resource in sorted(resources, key=order)
        ]

    async def _create(self, controller: ResourceController, entry: PlanEntry) -> ResourceData:
        data = controller.new_data(entry.desired)
        try:
            await controller.create(self.client, data)
            if not data.exists:
                raise BackendError(
                    f"{entry.address} was created but not found on read-back"
                )
        finally:
            # Keep whatever the backend already created
            self._persist(entry.kind, entry.name, data)
        return data

    async def _apply_entry(self, entry: PlanEntry) -> ResourceData:
        controller = self.registry.get(entry.kind)
        current = self.state.get(entry.address)

        if entry.action == PlanAction.CREATE:
            return await self._create(controller, entry)

        if entry.action == PlanAction.UPDATE:
            data = current.to_data()
            backend_changes = [k for k in entry.changes if k not in controller.client_side]
            for key, value in entry.desired.items():
                data.set(key, value)
            if backend_changes:
                await controller.update(self.client, data)
            self._persist(entry.kind, entry.name, data)
            return data

        if entry.action == PlanAction.REPLACE:
            old = current.to_data()
            await controller.delete(self.client, old)
            self._persist(entry.kind, entry.name, old)
            return await self._create(controller, entry)

        if entry.action == PlanAction.DELETE:
            data = current.to_data()
            if data.exists:
                await controller.delete(self.client, data)
            self._persist(entry.kind, entry.name, data)
            return data

        return current.to_data()

    async def apply(self, plan: List[PlanEntry]) -> List[ReconcileResult]:
        """Execute a plan, one resource at a time."""
        results: List[ReconcileResult] = []
        for entry in plan:
            start_time = time.monotonic()
            result = ReconcileResult(address=entry.address, action=entry.action)

            if entry.action == PlanAction.NOOP:
                current = self.state.get(entry.address)
                result.success = True
                result.message = "Up to date"
                result.resource_id = current.id if current else ""
                results.append(result)
                continue

            try:
                data = await self._apply_entry(entry)
                result.success = True
                result.resource_id = data.id
                result.message = f"{entry.action.value} complete"
                logger.info(f"{entry.address}: {result.message}")
            except OperatorError as e:
                result.success = False
                result.message = str(e)
                logger.error(f"{entry.address}: {entry.action.value} failed: {e}")
            finally:
                result.duration_seconds = time.monotonic() - start_time

            results.append(result)
        return results

    async def import_resource(self, address: str, resource_id: str) -> ResourceState:
        """
        Adopt an existing backend object into state by id alone.

        Raises:
            ValueError: If the address is malformed or already managed.
        """
        kind, name = split_address(address)
        controller = self.registry.get(kind)
        existing = self.state.get(address)
        if existing is not None and existing.id:
            raise ValueError(f"{address} is already managed with id {existing.id}")

        data = await controller.import_state(self.client, resource_id)
        self._persist(kind, name, data)
        return self.state.get(address)

    def plan_destroy(self) -> List[PlanEntry]:
        """Plan deletion of every resource in state."""
        return self._plan_deletes(list(self.state))
