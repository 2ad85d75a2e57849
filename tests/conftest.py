"""Pytest configuration and fixtures."""

import itertools
from unittest.mock import AsyncMock

import pytest

from errors import BackendError, NotFoundError
from opcli.client import OnePassClient
from opcli.models import User, Vault
from resources.registry import ResourceRegistry, register_builtin_resources

CREATOR_UUID = "CREATOR1"
CREATOR_EMAIL = "operator@example.com"


class FakeOnePassClient:
    """
    In-memory stand-in for the op CLI.

    Vault ids are lowercase, user ids are listed uppercase, and ids are
    accepted case-insensitively, like the real backend. Every call is
    recorded in ``calls`` as (method, args).
    """

    def __init__(self, tolerate_missing_removal: bool = False):
        self.email = CREATOR_EMAIL
        self.tolerate_missing_removal = tolerate_missing_removal
        self.vaults = {}
        self.vault_members = {}
        self.group_vaults = {}
        self.users = {CREATOR_UUID: CREATOR_EMAIL}
        self.calls = []
        self._ids = itertools.count(1)

    def add_user(self, uuid, email):
        self.users[uuid.upper()] = email

    def add_group(self, group_id):
        self.group_vaults.setdefault(group_id.lower(), [])

    def _vault(self, vault_id):
        vault = self.vaults.get(vault_id.lower())
        if vault is None:
            raise NotFoundError(f"\"{vault_id}\" doesn't seem to be a vault in this account")
        return vault

    async def read_vault(self, vault_id):
        self.calls.append(("read_vault", (vault_id,)))
        return self._vault(vault_id)

    async def create_vault(self, name):
        self.calls.append(("create_vault", (name,)))
        uuid = f"vault{next(self._ids):04d}"
        self.vaults[uuid] = Vault(uuid=uuid, name=name)
        self.vault_members[uuid] = [CREATOR_UUID]
        return self.vaults[uuid]

    async def update_vault(self, vault_id, name):
        self.calls.append(("update_vault", (vault_id, name)))
        vault = self._vault(vault_id)
        self.vaults[vault.uuid] = Vault(uuid=vault.uuid, name=name)

    async def delete_vault(self, vault_id):
        self.calls.append(("delete_vault", (vault_id,)))
        vault = self._vault(vault_id)
        del self.vaults[vault.uuid]
        self.vault_members.pop(vault.uuid, None)

    async def list_vault_members(self, vault_id):
        self.calls.append(("list_vault_members", (vault_id,)))
        if not vault_id:
            raise BackendError("Must provide an identifier to list vault members")
        vault = self._vault(vault_id)
        return [
            User(uuid=uuid, email=self.users.get(uuid, ""))
            for uuid in self.vault_members[vault.uuid]
        ]

    def _user_uuid(self, user_id):
        for uuid, email in self.users.items():
            if user_id.upper() == uuid or user_id == email:
                return uuid
        raise NotFoundError(f"\"{user_id}\" doesn't seem to be a user in this account")

    async def add_vault_member(self, user_id, vault_id):
        self.calls.append(("add_vault_member", (user_id, vault_id)))
        vault = self._vault(vault_id)
        uuid = self._user_uuid(user_id)
        if uuid not in self.vault_members[vault.uuid]:
            self.vault_members[vault.uuid].append(uuid)

    async def remove_vault_member(self, vault_id, user_id):
        self.calls.append(("remove_vault_member", (vault_id, user_id)))
        vault = self._vault(vault_id)
        uuid = self._user_uuid(user_id)
        members = self.vault_members[vault.uuid]
        if uuid not in members:
            if self.tolerate_missing_removal:
                return
            raise BackendError(f"User {user_id} is not a member of vault {vault_id}")
        members.remove(uuid)

    async def list_group_vaults(self, group_id):
        self.calls.append(("list_group_vaults", (group_id,)))
        if not group_id:
            raise BackendError("Must provide an identifier to list group vaults")
        if group_id.lower() not in self.group_vaults:
            raise NotFoundError(f"\"{group_id}\" doesn't seem to be a group in this account")
        return [self.vaults.get(v, Vault(uuid=v)) for v in self.group_vaults[group_id.lower()]]

    async def add_group_vault(self, vault_id, group_id):
        self.calls.append(("add_group_vault", (vault_id, group_id)))
        vaults = self.group_vaults.setdefault(group_id.lower(), [])
        if vault_id.lower() not in vaults:
            vaults.append(vault_id.lower())

    async def remove_group_vault(self, group_id, vault_id):
        self.calls.append(("remove_group_vault", (group_id, vault_id)))
        vaults = self.group_vaults.get(group_id.lower(), [])
        if vault_id.lower() not in vaults:
            if self.tolerate_missing_removal:
                return
            raise BackendError(f"Group {group_id} has no access to vault {vault_id}")
        vaults.remove(vault_id.lower())

    def called(self, method):
        return [args for name, args in self.calls if name == method]


@pytest.fixture
def fake_client():
    """Stateful fake backend."""
    return FakeOnePassClient()


@pytest.fixture
def mock_client():
    """Create a mock op client."""
    client = AsyncMock(spec=OnePassClient)
    client.email = CREATOR_EMAIL
    return client


@pytest.fixture
def registry():
    """Registry with the built-in controllers."""
    reg = ResourceRegistry()
    register_builtin_resources(reg)
    return reg


@pytest.fixture
def sample_manifest():
    """Sample manifest document for testing."""
    return {
        "resources": [
            {
                "kind": "onepassword_vault",
                "name": "team",
                "attributes": {"name": "Team Vault"},
            },
            {
                "kind": "onepassword_group_vault",
                "name": "team_admins",
                "attributes": {"group": "G1", "vault": "vault0001"},
            },
            {
                "kind": "onepassword_vault_member",
                "name": "alice",
                "attributes": {"vault": "vault0001", "user": "u1"},
            },
        ]
    }
