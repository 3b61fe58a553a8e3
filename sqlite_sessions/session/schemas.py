from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import DEFAULT_TABLE

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StoreOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    table: str = Field(default=DEFAULT_TABLE, description="Session table name.")
    db: Optional[str] = Field(
        default=None,
        description="Database file name without extension. Defaults to the table name.",
    )
    dir: str = Field(default=".", description="Directory holding the database file.")
    concurrent_db: bool = Field(
        default=False,
        alias="concurrentDb",
        description="Open the database in write-ahead-log journal mode.",
    )

    @field_validator("table")
    @classmethod
    def validate_table_name(cls, value: str) -> str:
        # The table name is interpolated into SQL text, so only identifiers are allowed.
        if not _IDENTIFIER.match(value):
            raise ValueError(f"Invalid table name: {value!r}")
        return value

    @field_validator("db")
    @classmethod
    def validate_db_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        return value or None

    @property
    def db_name(self) -> str:
        return self.db or self.table
