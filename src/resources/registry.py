"""
Resource Registry - Discovery and registration of resource controllers.

Maps resource kind names to controller classes and hands out one shared
controller instance per kind. Third-party controllers can be registered via
the 'opvault.resources' entry point group.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, List, Optional, Type

from resources.base import ResourceController
from validation import validate_controller_schema

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "opvault.resources"


class ResourceRegistry:
    """Central registry for resource controllers."""

    def __init__(self):
        # Registered controller classes (not instantiated)
        self._controllers: Dict[str, Type[ResourceController]] = {}
        # Controllers are stateless, so one instance per kind is enough
        self._instances: Dict[str, ResourceController] = {}

    def register(self, controller_class: Type[ResourceController]) -> None:
        """
        Register a resource controller class.

        Args:
            controller_class: The ResourceController subclass to register

        Raises:
            ValueError: If the controller declares an invalid schema
        """
        instance = controller_class()
        kind = instance.kind

        is_valid, error = validate_controller_schema(instance.schema)
        if not is_valid:
            raise ValueError(f"Controller for {kind} has an invalid schema: {error}")

        if kind in self._controllers:
            logger.warning(f"Overwriting existing controller for kind: {kind}")

        self._controllers[kind] = controller_class
        self._instances[kind] = instance
        logger.debug(f"Registered resource controller: {kind}")

    def get(self, kind: str) -> ResourceController:
        """
        Get the controller for a resource kind.

        Raises:
            ValueError: If the kind is not registered
        """
        if kind not in self._instances:
            available = ", ".join(sorted(self._controllers.keys())) or "none"
            raise ValueError(f"Unknown resource kind: {kind}. Available kinds: {available}")
        return self._instances[kind]

    def list_kinds(self) -> List[str]:
        return sorted(self._controllers.keys())

    def get_kind_info(self, kind: str) -> Dict[str, Any]:
        controller = self.get(kind)
        return {
            "kind": kind,
            "schema": controller.schema,
            "force_new": controller.force_new,
        }

    def discover(self) -> None:
        """Load controllers advertised through entry points."""
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                controller_class = ep.load()
                self.register(controller_class)
            except Exception as e:
                logger.error(f"Failed to load resource controller {ep.name}: {e}")


# Global registry instance
_registry: Optional[ResourceRegistry] = None


def get_registry() -> ResourceRegistry:
    """Get the global resource registry."""
    global _registry
    if _registry is None:
        _registry = ResourceRegistry()
        register_builtin_resources(_registry)
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_resources(registry: ResourceRegistry) -> None:
    """Register the controllers shipped with this package."""
    from resources.relationship import GroupVaultController, VaultMemberController
    from resources.vault import VaultController

    for controller_class in (VaultController, GroupVaultController, VaultMemberController):
        registry.register(controller_class)
