"""
Lookup results shared by entity and relationship controllers.

A lookup either finds the object (PRESENT), establishes that it does not
exist (ABSENT), or fails (ERROR). Absence is never an error: controllers
translate it into a cleared resource id.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from errors import BackendError, NotFoundError
from opcli.models import Record

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LookupState(Enum):
    PRESENT = "present"
    ABSENT = "absent"
    ERROR = "error"


@dataclass
class Lookup(Generic[T]):
    """Tagged result of a backend lookup."""

    state: LookupState
    value: Optional[T] = None
    cause: Optional[Exception] = None

    @classmethod
    def present(cls, value: T) -> "Lookup[T]":
        return cls(state=LookupState.PRESENT, value=value)

    @classmethod
    def absent(cls) -> "Lookup[T]":
        return cls(state=LookupState.ABSENT)

    @classmethod
    def error(cls, cause: Exception) -> "Lookup[T]":
        return cls(state=LookupState.ERROR, cause=cause)

    @property
    def is_present(self) -> bool:
        return self.state is LookupState.PRESENT

    @property
    def is_absent(self) -> bool:
        return self.state is LookupState.ABSENT

    def unwrap(self) -> Optional[T]:
        """Return the value, None when absent, or raise the failure cause."""
        if self.state is LookupState.ERROR:
            raise self.cause
        return self.value


async def find_member(
    list_members: Callable[[str], Awaitable[Sequence[Record]]],
    parent_id: str,
    member_id: str,
) -> Lookup[str]:
    """
    Search a parent's member list for ``member_id``.

    The list is fetched once, unfiltered, and scanned in order. The first
    record whose uuid equals ``member_id`` wins.

    Args:
        list_members: Backend list operation for the parent kind.
        parent_id: Parent identifier.
        member_id: Member identifier, already normalized to the listing's case.

    Returns:
        PRESENT with the canonical member id, ABSENT if no record matched,
        ERROR if the list operation failed.
    """
    try:
        members = await list_members(parent_id)
    except BackendError as e:
        logger.error(f"Failed to list members of {parent_id}: {e}")
        return Lookup.error(e)

    for member in members:
        if member.uuid == member_id:
            return Lookup.present(member.uuid)

    logger.debug(f"{member_id} is not a member of {parent_id}")
    return Lookup.absent()


async def lookup_entity(
    read: Callable[[str], Awaitable[Any]], entity_id: str
) -> Lookup[Any]:
    """Fetch a top-level entity, mapping not-found to ABSENT."""
    try:
        record = await read(entity_id)
    except NotFoundError:
        logger.info(f"{entity_id} no longer exists at the backend")
        return Lookup.absent()
    except BackendError as e:
        return Lookup.error(e)
    return Lookup.present(record)
