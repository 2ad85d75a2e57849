"""
op CLI client - the backend collaborator for all resource controllers.

Every operation is one invocation of the ``op`` binary. Output is JSON on
stdout; failures are reported on stderr with a non-zero exit status.
"""

import asyncio
import json
import logging
import re
from typing import Any, List, Optional, Type, TypeVar

from pydantic import ValidationError

from config import OnePasswordConfig, get_config
from errors import BackendError, NotFoundError
from opcli.models import Record, User, Vault

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)

# op verbs
OP_GET = "get"
OP_CREATE = "create"
OP_EDIT = "edit"
OP_DELETE = "delete"
OP_LIST = "list"
OP_ADD = "add"
OP_REMOVE = "remove"

VAULT_RESOURCE = "vault"
USER_RESOURCE = "user"
GROUP_RESOURCE = "group"

NOT_FOUND_PATTERNS = [
    re.compile(r"doesn't seem to be an? \w+", re.IGNORECASE),
    re.compile(r"\bnot found\b", re.IGNORECASE),
    re.compile(r"no \w+ found", re.IGNORECASE),
]


class OnePassClient:
    """
    Thin async wrapper around the ``op`` command-line tool.

    A single instance is created by the caller and passed explicitly to every
    controller operation.
    """

    def __init__(
        self,
        cli_path: str = "op",
        session_token: str = "",
        account: str = "",
        email: str = "",
        timeout: int = 30,
    ):
        self.cli_path = cli_path
        self.session_token = session_token
        self.account = account
        self.email = email
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: OnePasswordConfig) -> "OnePassClient":
        """Build a client from a OnePasswordConfig."""
        return cls(
            cli_path=config.cli_path,
            session_token=config.session_token,
            account=config.account,
            email=config.email,
            timeout=config.command_timeout,
        )

    def _build_command(self, args: List[str]) -> List[str]:
        command = [self.cli_path, *args]
        if self.session_token:
            command.extend(["--session", self.session_token])
        if self.account:
            command.extend(["--account", self.account])
        return command

    def _redact(self, command: List[str]) -> List[str]:
        if not self.session_token:
            return command
        return ["***" if part == self.session_token else part for part in command]

    async def run_cmd(self, *args: str) -> bytes:
        """
        Run an op command and return its stdout.

        Raises:
            NotFoundError: If stderr reports a missing object.
            BackendError: On any other failure, including timeouts.
        """
        command = self._build_command(list(args))
        redacted = self._redact(command)
        logger.debug(f"Running: {' '.join(redacted)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BackendError(
                f"Unable to execute {self.cli_path}: {e}", command=redacted
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise BackendError(
                f"Command timed out after {self.timeout}s: {' '.join(redacted)}",
                command=redacted,
            ) from e

        if proc.returncode != 0:
            error_text = stderr.decode(errors="replace").strip()
            error_class: Type[BackendError] = BackendError
            if any(p.search(error_text) for p in NOT_FOUND_PATTERNS):
                error_class = NotFoundError
            raise error_class(
                error_text or f"op exited with status {proc.returncode}",
                command=redacted,
                stderr=error_text,
                returncode=proc.returncode,
            )

        return stdout

    def _decode(self, raw: bytes, model: Type[R]) -> R:
        try:
            return model.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise BackendError(f"Unable to decode {model.__name__}: {e}") from e

    def _decode_list(self, raw: bytes, model: Type[R]) -> List[R]:
        try:
            data: Any = json.loads(raw) if raw.strip() else []
            if data is None:
                return []
            return [model.model_validate(item) for item in data]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            raise BackendError(
                f"Unable to decode {model.__name__} list: {e}"
            ) from e

    async def delete(self, resource: str, resource_id: str) -> None:
        """Delete any top-level object by type and id."""
        await self.run_cmd(OP_DELETE, resource, resource_id)

    # Vaults

    async def read_vault(self, vault_id: str) -> Vault:
        res = await self.run_cmd(OP_GET, VAULT_RESOURCE, vault_id)
        return self._decode(res, Vault)

    async def create_vault(self, name: str) -> Vault:
        res = await self.run_cmd(OP_CREATE, VAULT_RESOURCE, name)
        return self._decode(res, Vault)

    async def update_vault(self, vault_id: str, name: str) -> None:
        await self.run_cmd(OP_EDIT, VAULT_RESOURCE, vault_id, f"--name={name}")

    async def delete_vault(self, vault_id: str) -> None:
        await self.delete(VAULT_RESOURCE, vault_id)

    # Vault <-> user membership

    async def list_vault_members(self, vault_id: str) -> List[User]:
        if not vault_id:
            raise BackendError("Must provide an identifier to list vault members")
        res = await self.run_cmd(OP_LIST, "users", f"--{VAULT_RESOURCE}", vault_id)
        return self._decode_list(res, User)

    async def add_vault_member(self, user_id: str, vault_id: str) -> None:
        """Grant a user access to a vault. Member first, then parent."""
        await self.run_cmd(OP_ADD, USER_RESOURCE, user_id, vault_id)

    async def remove_vault_member(self, vault_id: str, user_id: str) -> None:
        """Revoke a user's access to a vault. Parent first, then member."""
        await self.run_cmd(OP_REMOVE, USER_RESOURCE, user_id, vault_id)

    # Group <-> vault binding

    async def list_group_vaults(self, group_id: str) -> List[Vault]:
        if not group_id:
            raise BackendError("Must provide an identifier to list group vaults")
        res = await self.run_cmd(OP_LIST, "vaults", f"--{GROUP_RESOURCE}", group_id)
        return self._decode_list(res, Vault)

    async def add_group_vault(self, vault_id: str, group_id: str) -> None:
        """Grant a group access to a vault. Member (vault) first, then group."""
        await self.run_cmd(OP_ADD, GROUP_RESOURCE, group_id, vault_id)

    async def remove_group_vault(self, group_id: str, vault_id: str) -> None:
        """Revoke a group's access to a vault. Group first, then vault."""
        await self.run_cmd(OP_REMOVE, GROUP_RESOURCE, group_id, vault_id)


def get_client(config: Optional[OnePasswordConfig] = None) -> OnePassClient:
    """Create a client from the loaded configuration."""
    if config is None:
        config = get_config().onepassword
    return OnePassClient.from_config(config)
