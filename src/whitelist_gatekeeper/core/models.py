"""
Whitelist Data Models.

Defines the persisted whitelist document and its entries. Field aliases
match the on-disk JSON layout so existing ``whitelist.json`` files load
unchanged:

    {
      "Users":    [{"Username": "Steve", "UUID": "abc-123"}],
      "Attempts": [{"Username": "Alex",  "UUID": "def-456"}]
    }

The UUID is the opaque identity string asserted by the game server's login
layer. It is not necessarily an RFC 4122 UUID.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WhitelistUser(BaseModel):
    """
    A player known to the whitelist.

    Used for both allow-list entries and recorded attempts.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    username: str = Field(..., alias="Username", description="Display name when last seen")
    uuid: str = Field(..., alias="UUID", description="Server-asserted identity string")

    def matches(self, search: str) -> bool:
        """Exact, case-sensitive match on UUID or username."""
        return self.uuid == search or self.username == search

    def __str__(self) -> str:
        return f"{self.username} ({self.uuid})"


class WhitelistDocument(BaseModel):
    """The whole persisted whitelist: allowed users plus rejected attempts."""

    model_config = ConfigDict(populate_by_name=True)

    users: list[WhitelistUser] = Field(default_factory=list, alias="Users")
    attempts: list[WhitelistUser] = Field(default_factory=list, alias="Attempts")

    def to_json(self) -> str:
        """Serialize with the on-disk field names."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> WhitelistDocument:
        """Parse a persisted document. Raises ``pydantic.ValidationError``."""
        return cls.model_validate_json(data)
