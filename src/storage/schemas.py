"""Pydantic models for entity and link records stored in the biographical graph."""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LinkType(str, Enum):
    """Typed link categories between two entities."""

    KINSHIP = "kinship"
    ASSOCIATION = "association"

    @property
    def relationship_label(self) -> str:
        """Neo4j relationship type used to store links of this kind."""
        return self.value.upper()

    @property
    def code_label(self) -> str:
        """Neo4j node label holding the code table for this link type."""
        return "KinshipCode" if self is LinkType.KINSHIP else "AssociationCode"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


def selected_link_types(include_kinship: bool, include_association: bool) -> List[LinkType]:
    """Return the link types enabled by the include flags, kinship first."""
    types: List[LinkType] = []
    if include_kinship:
        types.append(LinkType.KINSHIP)
    if include_association:
        types.append(LinkType.ASSOCIATION)
    return types


class TypedLink(BaseModel):
    """A typed relationship record between two entities."""

    model_config = ConfigDict(frozen=True)

    source: int = Field(..., description="Entity the link is recorded on")
    target: int = Field(..., description="Related entity")
    link_type: LinkType = Field(..., description="Kinship or association")
    link_code: Optional[int] = Field(default=None, description="Relationship code")
    label: str = Field(default="", description="Raw label as stored")

    def other_end(self, entity_id: int) -> int:
        """Return the endpoint opposite ``entity_id``."""
        return self.target if self.source == entity_id else self.source

    @property
    def pair_key(self) -> Tuple[int, int]:
        return (min(self.source, self.target), max(self.source, self.target))


class LinkCode(BaseModel):
    """Code table row describing a kinship or association code."""

    model_config = ConfigDict(frozen=True)

    code: int
    link_type: LinkType
    label: str = ""
    label_chn: str = ""

    def format_label(self) -> str:
        """Prefer the Chinese name with the English name in parentheses."""
        if self.label_chn and self.label:
            return f"{self.label_chn} ({self.label})"
        if self.label_chn:
            return self.label_chn
        if self.label:
            return self.label
        prefix = "K" if self.link_type is LinkType.KINSHIP else "A"
        return f"{prefix}{self.code}"


class EntitySummary(BaseModel):
    """Attribute view of a biographical entity."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Entity identifier")
    name: Optional[str] = Field(default=None, description="Romanized name")
    name_chn: Optional[str] = Field(default=None, description="Chinese name")
    index_year: Optional[int] = Field(default=None, description="Index year")
    dynasty: Optional[int] = Field(default=None, description="Dynasty code")
    female: Optional[bool] = Field(default=None, description="True if female, None if unknown")
    birth_year: Optional[int] = Field(default=None)
    death_year: Optional[int] = Field(default=None)

    @property
    def display_label(self) -> str:
        if self.name_chn:
            return f"{self.name_chn} ({self.name})" if self.name else self.name_chn
        return self.name or f"Person {self.id}"

    def to_neo4j_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class EntityFilter(BaseModel):
    """Attribute predicate applied to discovered entities.

    Query entities are never subject to the filter. An entity whose attribute is
    unknown fails any active constraint on that attribute.
    """

    model_config = ConfigDict(frozen=True)

    index_year_range: Optional[Tuple[int, int]] = Field(
        default=None, description="Inclusive index-year bounds"
    )
    dynasties: List[int] = Field(default_factory=list, description="Allowed dynasty codes")
    include_male: bool = Field(default=True)
    include_female: bool = Field(default=True)

    @field_validator("index_year_range")
    @classmethod
    def validate_year_range(cls, v: Optional[Tuple[int, int]]) -> Optional[Tuple[int, int]]:
        if v is not None and v[0] > v[1]:
            raise ValueError("index_year_range lower bound must not exceed upper bound")
        return v

    @model_validator(mode="after")
    def validate_gender_flags(self) -> "EntityFilter":
        if not self.include_male and not self.include_female:
            raise ValueError("At least one of include_male/include_female must be enabled")
        return self

    def is_active(self) -> bool:
        """True when the filter constrains anything at all."""
        return bool(
            self.index_year_range is not None
            or self.dynasties
            or not self.include_male
            or not self.include_female
        )

    def matches(self, entity: EntitySummary) -> bool:
        if self.index_year_range is not None:
            low, high = self.index_year_range
            if entity.index_year is None or not low <= entity.index_year <= high:
                return False
        if self.dynasties and entity.dynasty not in self.dynasties:
            return False
        if not self.include_male and entity.female is not True:
            return False
        if not self.include_female and entity.female is not False:
            return False
        return True
