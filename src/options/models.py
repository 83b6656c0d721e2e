"""
Option Discovery — data shapes

FilterState is a point in a strict dependency chain; OptionValue is what a
site's form control offers; DiscoveredOption is the caller-facing shape where
the display label is the canonical value and each site's internal code is kept
under its own key in platform_data.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Fixed resolution order. The variant branch after variantType is chosen by
# the variantType value itself.
FILTER_CHAIN: tuple[str, ...] = ("sport", "year", "manufacturer", "setName", "variantType")
VARIANT_BRANCHES: dict[str, str] = {
    "insert": "insertName",
    "parallel": "parallelName",
}
LEVELS: tuple[str, ...] = FILTER_CHAIN + ("insertName", "parallelName")

_LEVEL_FIELDS: dict[str, str] = {
    "sport": "sport",
    "year": "year",
    "manufacturer": "manufacturer",
    "setName": "set_name",
    "variantType": "variant_type",
    "insertName": "insert_name",
    "parallelName": "parallel_name",
}


class FilterState(BaseModel):
    """Partial filter selection, addressed by the camelCase level names."""

    model_config = ConfigDict(populate_by_name=True)

    sport: str | None = None
    year: str | None = None
    manufacturer: str | None = None
    set_name: str | None = Field(default=None, alias="setName")
    variant_type: str | None = Field(default=None, alias="variantType")
    insert_name: str | None = Field(default=None, alias="insertName")
    parallel_name: str | None = Field(default=None, alias="parallelName")

    def get(self, level: str) -> str | None:
        """Value for a level name; blank strings count as unset."""
        value = getattr(self, _LEVEL_FIELDS[level])
        if value is None or not str(value).strip():
            return None
        return str(value)


class OptionValue(BaseModel):
    """One raw candidate from a site control: display label + site token."""

    label: str
    value: str


class DiscoveredOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: str
    platform_data: dict[str, str] = Field(default_factory=dict, alias="platformData")


class OptionSet(BaseModel):
    options: list[DiscoveredOption] = Field(default_factory=list)
