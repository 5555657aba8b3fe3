"""Catalog record models."""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_CONTRIBUTOR_TYPE = "Unknown"


class ContributorTypeInfo(BaseModel):
    """Resolved contributor-type descriptor (e.g. C01 -> Government)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name of the contributor type")
    definition: str = Field(default="", description="Long-form definition")


class Record(BaseModel):
    """One donor catalog entry.

    Name and code are optional so that rows with data-quality problems can still be
    loaded; the search core skips incomplete records instead of failing.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = Field(None, description="Display name")
    code: str | None = Field(None, description="Unique donor code")
    contributor_type_code: str | None = Field(None, description="Contributor type code")
    contributor_type_info: ContributorTypeInfo | None = Field(
        None, description="Resolved contributor type"
    )
    type_flag: str | None = Field(None, description="TYPE column: 1 government, 0 other")

    @property
    def is_complete(self) -> bool:
        """Whether the record has the fields required for matching."""
        return bool(self.name and self.name.strip() and self.code and self.code.strip())

    @property
    def contributor_type_name(self) -> str:
        if self.contributor_type_info is None:
            return UNKNOWN_CONTRIBUTOR_TYPE
        return self.contributor_type_info.name or UNKNOWN_CONTRIBUTOR_TYPE

    def is_government(self, government_codes: Iterable[str]) -> bool:
        """Whether the contributor type code is one of ``government_codes``.

        The catalog's TYPE column is informational; the contributor type decides.
        """
        code = self.contributor_type_code
        return code is not None and code in set(government_codes)

    @property
    def sort_key(self) -> tuple[str, str]:
        return ((self.name or "").casefold(), (self.code or "").casefold())
