"""
Relationship resources - membership facts between two entities.

The backend stores no relationship record. A relationship exists exactly when
the member appears in the parent's member list, so every read re-derives it
from that list. The resource id is a composite of parent and member ids.

Backend add operations take the member before the parent; remove operations
take the parent before the member. Both orders are preserved as-is.
"""

import logging
from abc import abstractmethod
from typing import Any, Dict, List, Sequence

from identity import GROUP_VAULT_CODEC, VAULT_MEMBER_CODEC, IdentityCodec
from lookup import find_member
from opcli.client import OnePassClient
from opcli.models import Record
from resources.base import ResourceController, ResourceData

logger = logging.getLogger(__name__)


class RelationshipController(ResourceController):
    """
    Create/read/delete protocol shared by all membership kinds.

    Subclasses name the parent and member attributes, pick a codec, and wire
    the three backend membership primitives.
    """

    codec: IdentityCodec
    parent_attr: str
    member_attr: str

    @property
    def schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "required": [self.parent_attr, self.member_attr],
            "additionalProperties": False,
            "properties": {
                self.parent_attr: {"type": "string", "minLength": 1},
                self.member_attr: {"type": "string", "minLength": 1},
            },
        }

    @property
    def force_new(self) -> List[str]:
        return [self.parent_attr, self.member_attr]

    def normalize(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        normalized = dict(attributes)
        if isinstance(normalized.get(self.parent_attr), str):
            normalized[self.parent_attr] = normalized[self.parent_attr].lower()
        if isinstance(normalized.get(self.member_attr), str):
            normalized[self.member_attr] = self.codec.normalize_member(
                normalized[self.member_attr]
            )
        return normalized

    @abstractmethod
    async def list_members(
        self, client: OnePassClient, parent_id: str
    ) -> Sequence[Record]:
        pass

    @abstractmethod
    async def add_member(
        self, client: OnePassClient, member_id: str, parent_id: str
    ) -> None:
        pass

    @abstractmethod
    async def remove_member(
        self, client: OnePassClient, parent_id: str, member_id: str
    ) -> None:
        pass

    async def read(self, client: OnePassClient, data: ResourceData) -> None:
        key = self.codec.extract(data.id)

        result = await find_member(
            lambda parent_id: self.list_members(client, parent_id),
            key.parent,
            key.member,
        )
        if result.is_absent:
            logger.info(f"{self.kind} {data.id} no longer exists")
            data.clear_id()
            return

        canonical = result.unwrap()
        data.set_id(self.codec.build(key.parent, canonical))
        data.set(self.parent_attr, key.parent)
        data.set(self.member_attr, canonical)

    async def create(self, client: OnePassClient, data: ResourceData) -> None:
        parent_id = data.get(self.parent_attr)
        member_id = data.get(self.member_attr)

        await self.add_member(client, member_id, parent_id)
        logger.info(f"Added {member_id} to {parent_id} ({self.kind})")

        data.set_id(self.codec.build(parent_id, member_id))
        await self.read(client, data)

    async def delete(self, client: OnePassClient, data: ResourceData) -> None:
        key = self.codec.extract(data.id)

        await self.remove_member(client, key.parent, key.member)
        logger.info(f"Removed {key.member} from {key.parent} ({self.kind})")
        data.clear_id()


class GroupVaultController(RelationshipController):
    """Grants a group access to a vault."""

    codec = GROUP_VAULT_CODEC
    parent_attr = "group"
    member_attr = "vault"

    @property
    def kind(self) -> str:
        return "onepassword_group_vault"

    async def list_members(self, client, parent_id):
        return await client.list_group_vaults(parent_id)

    async def add_member(self, client, member_id, parent_id):
        await client.add_group_vault(member_id, parent_id)

    async def remove_member(self, client, parent_id, member_id):
        await client.remove_group_vault(parent_id, member_id)


class VaultMemberController(RelationshipController):
    """Grants a user access to a vault."""

    codec = VAULT_MEMBER_CODEC
    parent_attr = "vault"
    member_attr = "user"

    @property
    def kind(self) -> str:
        return "onepassword_vault_member"

    async def list_members(self, client, parent_id):
        return await client.list_vault_members(parent_id)

    async def add_member(self, client, member_id, parent_id):
        await client.add_vault_member(member_id, parent_id)

    async def remove_member(self, client, parent_id, member_id):
        await client.remove_vault_member(parent_id, member_id)
