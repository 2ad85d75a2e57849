"""
Vault resource - a top-level entity with full CRUD.

``safety_lock`` and ``incognito`` are client-side attributes: the backend
never sees them, so reads leave them untouched.
"""

import logging
from typing import Any, Dict, List

from errors import BackendError, ProtectedResource, SecondaryEffectError
from lookup import lookup_entity
from opcli.client import OnePassClient
from resources.base import ResourceController, ResourceData

logger = logging.getLogger(__name__)


class VaultController(ResourceController):
    """Controller for onepassword_vault resources."""

    @property
    def kind(self) -> str:
        return "onepassword_vault"

    @property
    def schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "required": ["name"],
            "additionalProperties": False,
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "safety_lock": {
                    "type": "boolean",
                    "default": False,
                    "description": "Prevents removal of the vault",
                },
                "incognito": {
                    "type": "boolean",
                    "default": False,
                    "description": "Remove the creator from the vault after creation",
                },
            },
        }

    @property
    def client_side(self) -> List[str]:
        return ["safety_lock", "incognito"]

    @property
    def create_only(self) -> List[str]:
        return ["incognito"]

    async def read(self, client: OnePassClient, data: ResourceData) -> None:
        result = await lookup_entity(client.read_vault, data.id)
        if result.is_absent:
            data.clear_id()
            return

        vault = result.unwrap()
        data.set_id(vault.uuid)
        data.set("name", vault.name)

    async def create(self, client: OnePassClient, data: ResourceData) -> None:
        vault = await client.create_vault(data.get("name"))
        data.set_id(vault.uuid)
        logger.info(f"Created vault {vault.name} ({vault.uuid})")

        if data.get("incognito"):
            # The creator is added to every vault it creates
            if not client.email:
                raise SecondaryEffectError(
                    f"Vault {vault.uuid} was created but the creator cannot be removed",
                    resource_id=vault.uuid,
                    cause=ValueError("OP_EMAIL is not set"),
                )
            try:
                await client.remove_vault_member(vault.uuid, client.email)
            except BackendError as e:
                raise SecondaryEffectError(
                    f"Vault {vault.uuid} was created but removing creator "
                    f"{client.email} failed",
                    resource_id=vault.uuid,
                    cause=e,
                ) from e
            logger.info(f"Removed creator {client.email} from vault {vault.uuid}")

        await self.read(client, data)

    async def update(self, client: OnePassClient, data: ResourceData) -> None:
        await client.update_vault(data.id, data.get("name"))
        await self.read(client, data)

    async def delete(self, client: OnePassClient, data: ResourceData) -> None:
        if data.get("safety_lock"):
            raise ProtectedResource("Vault", data.id)

        await client.delete_vault(data.id)
        logger.info(f"Deleted vault {data.id}")
        data.clear_id()
