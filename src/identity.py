"""
Composite identity codec.

Relationship resources have no backend identifier. Their id is synthesized
from the parent and member ids, joined by a separator and case-normalized.
Decoding is the inverse only up to that normalization: the original casing of
the inputs is not recoverable.

Ids that themselves contain the separator cannot be decoded. Backend UUIDs
never contain it, so this is left as a precondition rather than validated.
"""

from dataclasses import dataclass

from errors import MalformedIdentifier

SEPARATOR = "-"


@dataclass(frozen=True)
class CompositeID:
    """Value type for a parent/member pair."""

    parent: str
    member: str

    def __str__(self) -> str:
        return f"{self.parent}{SEPARATOR}{self.member}"


class IdentityCodec:
    """
    Builds and parses composite ids for one relationship kind.

    Both parts are lowercased on build. On extract the member part is recased
    according to ``member_case``, matching the casing the backend uses when
    listing that kind of member.
    """

    def __init__(
        self,
        parent_label: str = "parentid",
        member_label: str = "memberid",
        member_case: str = "lower",
        separator: str = SEPARATOR,
    ):
        if member_case not in ("lower", "upper"):
            raise ValueError(f"member_case must be 'lower' or 'upper', got {member_case!r}")
        self.parent_label = parent_label
        self.member_label = member_label
        self.member_case = member_case
        self.separator = separator

    @property
    def expected_format(self) -> str:
        return f"{self.parent_label}{self.separator}{self.member_label}"

    def normalize_member(self, member: str) -> str:
        return member.upper() if self.member_case == "upper" else member.lower()

    def build(self, parent: str, member: str) -> str:
        return f"{parent.lower()}{self.separator}{member.lower()}"

    def extract(self, resource_id: str) -> CompositeID:
        """
        Split a composite id into its parent and member parts.

        Raises:
            MalformedIdentifier: If the id does not split into exactly two parts.
        """
        parts = resource_id.split(self.separator)
        if len(parts) != 2:
            raise MalformedIdentifier(resource_id, self.expected_format)
        return CompositeID(parent=parts[0], member=self.normalize_member(parts[1]))


GROUP_VAULT_CODEC = IdentityCodec(parent_label="groupid", member_label="vaultid")

# User UUIDs are listed in uppercase by the backend
VAULT_MEMBER_CODEC = IdentityCodec(
    parent_label="vaultid", member_label="userid", member_case="upper"
)
