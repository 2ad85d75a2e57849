"""
Records decoded from op CLI JSON output.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    """Base record; the CLI emits many more fields than we use."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    uuid: str


class Vault(Record):
    name: str = ""
    description: Optional[str] = Field(default=None, alias="desc")
    type: Optional[str] = None


class User(Record):
    email: str = ""
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    state: Optional[str] = None

