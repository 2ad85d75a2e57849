"""Unit tests for the vault resource controller."""

from unittest.mock import call

import pytest

from errors import BackendError, NotFoundError, ProtectedResource, SecondaryEffectError
from opcli.models import Vault
from resources.base import ResourceData
from resources.vault import VaultController


@pytest.fixture
def controller():
    return VaultController()


class TestVaultControllerDeclaration:
    """Tests for the declared schema and defaults."""

    def test_kind(self, controller):
        assert controller.kind == "onepassword_vault"

    def test_defaults(self, controller):
        assert controller.defaults == {"safety_lock": False, "incognito": False}

    def test_nothing_forces_replacement(self, controller):
        assert controller.force_new == []

    def test_client_side_attributes(self, controller):
        assert controller.client_side == ["safety_lock", "incognito"]

    def test_incognito_is_create_only(self, controller):
        assert controller.create_only == ["incognito"]

    def test_new_data_applies_defaults(self, controller):
        data = controller.new_data({"name": "Team", "safety_lock": True})
        assert data.id == ""
        assert data.attributes == {"name": "Team", "safety_lock": True, "incognito": False}


@pytest.mark.asyncio
class TestVaultRead:
    """Tests for VaultController.read."""

    async def test_read_populates_name(self, controller, mock_client):
        mock_client.read_vault.return_value = Vault(uuid="AbC123", name="Team")
        data = ResourceData(id="AbC123", attributes={"safety_lock": True})

        await controller.read(mock_client, data)

        mock_client.read_vault.assert_awaited_once_with("AbC123")
        assert data.id == "AbC123"
        assert data.get("name") == "Team"
        assert data.get("safety_lock") is True

    async def test_read_missing_vault_clears_id(self, controller, mock_client):
        mock_client.read_vault.side_effect = NotFoundError("doesn't seem to be a vault")
        data = ResourceData(id="gone", attributes={"name": "Team"})

        await controller.read(mock_client, data)

        assert data.id == ""
        assert not data.exists

    async def test_read_backend_error_propagates(self, controller, mock_client):
        mock_client.read_vault.side_effect = BackendError("not signed in")
        data = ResourceData(id="abc")

        with pytest.raises(BackendError, match="not signed in"):
            await controller.read(mock_client, data)
        assert data.id == "abc"


@pytest.mark.asyncio
class TestVaultCreate:
    """Tests for VaultController.create."""

    async def test_create_reads_back(self, controller, mock_client):
        mock_client.create_vault.return_value = Vault(uuid="newid", name="Team")
        mock_client.read_vault.return_value = Vault(uuid="newid", name="Team")
        data = controller.new_data({"name": "Team"})

        await controller.create(mock_client, data)

        mock_client.create_vault.assert_awaited_once_with("Team")
        mock_client.read_vault.assert_awaited_once_with("newid")
        mock_client.remove_vault_member.assert_not_awaited()
        assert data.id == "newid"
        assert data.get("name") == "Team"

    async def test_incognito_removes_creator(self, controller, mock_client):
        mock_client.create_vault.return_value = Vault(uuid="newid", name="Team")
        mock_client.read_vault.return_value = Vault(uuid="newid", name="Team")
        data = controller.new_data({"name": "Team", "incognito": True})

        await controller.create(mock_client, data)

        mock_client.remove_vault_member.assert_awaited_once_with(
            "newid", "operator@example.com"
        )
        assert mock_client.method_calls[:3] == [
            call.create_vault("Team"),
            call.remove_vault_member("newid", "operator@example.com"),
            call.read_vault("newid"),
        ]

    async def test_incognito_failure_reports_cleanup_error(self, controller, mock_client):
        mock_client.create_vault.return_value = Vault(uuid="newid", name="Team")
        cleanup_error = BackendError("user is not a member")
        mock_client.remove_vault_member.side_effect = cleanup_error
        data = controller.new_data({"name": "Team", "incognito": True})

        with pytest.raises(SecondaryEffectError) as exc_info:
            await controller.create(mock_client, data)

        assert exc_info.value.cause is cleanup_error
        assert exc_info.value.resource_id == "newid"
        assert "user is not a member" in str(exc_info.value)
        # The vault exists, so the id is kept
        assert data.id == "newid"
        mock_client.read_vault.assert_not_awaited()

    async def test_incognito_without_email_skips_backend(self, controller, mock_client):
        mock_client.email = ""
        mock_client.create_vault.return_value = Vault(uuid="newid", name="Team")
        data = controller.new_data({"name": "Team", "incognito": True})

        with pytest.raises(SecondaryEffectError, match="OP_EMAIL is not set") as exc_info:
            await controller.create(mock_client, data)

        mock_client.remove_vault_member.assert_not_awaited()
        mock_client.read_vault.assert_not_awaited()
        assert exc_info.value.resource_id == "newid"
        assert data.id == "newid"

    async def test_create_failure_propagates(self, controller, mock_client):
        mock_client.create_vault.side_effect = BackendError("duplicate name")
        data = controller.new_data({"name": "Team"})

        with pytest.raises(BackendError, match="duplicate name"):
            await controller.create(mock_client, data)
        assert data.id == ""

    async def test_read_failure_after_create_propagates(self, controller, mock_client):
        mock_client.create_vault.return_value = Vault(uuid="newid", name="Team")
        mock_client.read_vault.side_effect = BackendError("rate limited")
        data = controller.new_data({"name": "Team"})

        with pytest.raises(BackendError):
            await controller.create(mock_client, data)
        assert data.id == "newid"


@pytest.mark.asyncio
class TestVaultUpdate:
    """Tests for VaultController.update."""

    async def test_update_renames_and_reads(self, controller, mock_client):
        mock_client.read_vault.return_value = Vault(uuid="abc", name="Renamed")
        data = ResourceData(id="abc", attributes={"name": "Renamed"})

        await controller.update(mock_client, data)

        mock_client.update_vault.assert_awaited_once_with("abc", "Renamed")
        mock_client.read_vault.assert_awaited_once_with("abc")
        assert data.get("name") == "Renamed"


@pytest.mark.asyncio
class TestVaultDelete:
    """Tests for VaultController.delete."""

    async def test_delete_clears_id(self, controller, mock_client):
        data = ResourceData(id="abc", attributes={"name": "Team", "safety_lock": False})

        await controller.delete(mock_client, data)

        mock_client.delete_vault.assert_awaited_once_with("abc")
        assert data.id == ""

    async def test_safety_lock_blocks_delete(self, controller, mock_client):
        data = ResourceData(id="abc", attributes={"name": "Team", "safety_lock": True})

        with pytest.raises(ProtectedResource) as exc_info:
            await controller.delete(mock_client, data)

        mock_client.delete_vault.assert_not_awaited()
        assert mock_client.method_calls == []
        assert exc_info.value.resource_id == "abc"
        assert data.id == "abc"

    async def test_delete_failure_keeps_id(self, controller, mock_client):
        mock_client.delete_vault.side_effect = BackendError("vault not empty")
        data = ResourceData(id="abc", attributes={"safety_lock": False})

        with pytest.raises(BackendError):
            await controller.delete(mock_client, data)
        assert data.id == "abc"


@pytest.mark.asyncio
class TestVaultImport:
    """Tests for import by id."""

    async def test_import_populates_all_attributes(self, controller, mock_client):
        mock_client.read_vault.return_value = Vault(uuid="abc", name="Team")

        data = await controller.import_state(mock_client, "abc")

        assert data.id == "abc"
        assert data.attributes == {
            "name": "Team",
            "safety_lock": False,
            "incognito": False,
        }

    async def test_import_missing_raises(self, controller, mock_client):
        mock_client.read_vault.side_effect = NotFoundError("doesn't seem to be a vault")

        with pytest.raises(NotFoundError, match="Cannot import"):
            await controller.import_state(mock_client, "abc")
