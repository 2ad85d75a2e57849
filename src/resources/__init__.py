"""
Resource controllers package.

Each controller owns the create/read/update/delete protocol for one resource
kind. Controllers are looked up by kind through the ResourceRegistry.
"""

from resources.base import ResourceController, ResourceData
from resources.registry import ResourceRegistry, get_registry
from resources.relationship import (
    GroupVaultController,
    RelationshipController,
    VaultMemberController,
)
from resources.vault import VaultController

__all__ = [
    "ResourceController",
    "ResourceData",
    "ResourceRegistry",
    "get_registry",
    "RelationshipController",
    "GroupVaultController",
    "VaultMemberController",
    "VaultController",
]
