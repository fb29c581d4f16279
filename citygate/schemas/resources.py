"""
Pydantic schemas for tenant-owned resource endpoints.

Rules:
- ALWAYS use Pydantic models for request bodies
- Create bodies never carry tenant_id; the tenant comes from the route
- Update bodies are partial: only fields that were sent are applied
"""
from __future__ import annotations
from typing import ClassVar, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

SLUG_PATTERN = r"^[a-z0-9-]+$"


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _Patch(_Body):
    """Omitted fields stay untouched; an explicit null is only accepted for nullable columns."""
    nullable: ClassVar[frozenset[str]] = frozenset()

    @field_validator("*", mode="before")
    @classmethod
    def _reject_null(cls, value, info: ValidationInfo):
        if value is None and info.field_name not in cls.nullable:
            raise ValueError("may not be null")
        return value


class DistrictIn(_Body):
    slug: str = Field(..., pattern=SLUG_PATTERN, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)


class DistrictPatch(_Patch):
    slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)


class NeighborhoodIn(_Body):
    district_id: str = Field(..., description="Parent district; must belong to the same tenant")
    slug: str = Field(..., pattern=SLUG_PATTERN, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)


class NeighborhoodPatch(_Patch):
    district_id: Optional[str] = None
    slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)


class TaxonomyTypeIn(_Body):
    slug: str = Field(..., pattern=SLUG_PATTERN, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    is_required: bool = False
    allow_multiple: bool = False
    display_order: int = Field(default=0, ge=0)


class TaxonomyTypePatch(_Patch):
    slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    is_required: Optional[bool] = None
    allow_multiple: Optional[bool] = None
    display_order: Optional[int] = Field(default=None, ge=0)


class TaxonomyValueIn(_Body):
    taxonomy_type_id: str = Field(..., description="Parent taxonomy type; must belong to the same tenant")
    slug: str = Field(..., pattern=SLUG_PATTERN, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    color_hex: str = Field(default="#CCCCCC", pattern=r"^#[0-9A-Fa-f]{6}$")
    display_order: int = Field(default=0, ge=0)


class TaxonomyValuePatch(_Patch):
    taxonomy_type_id: Optional[str] = None
    slug: Optional[str] = Field(default=None, pattern=SLUG_PATTERN, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    color_hex: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    display_order: Optional[int] = Field(default=None, ge=0)


class LanguageIn(_Body):
    code: str = Field(..., min_length=2, max_length=10)
    name: str = Field(..., min_length=1, max_length=200)
    endonym: Optional[str] = Field(default=None, max_length=200)


class LanguagePatch(_Patch):
    nullable: ClassVar[frozenset[str]] = frozenset({"endonym"})

    code: Optional[str] = Field(default=None, min_length=2, max_length=10)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    endonym: Optional[str] = Field(default=None, max_length=200)


class TenantLocaleIn(_Body):
    locale_code: str = Field(..., min_length=2, max_length=5)
    is_enabled: bool = True


class TenantLocalePatch(_Patch):
    is_enabled: Optional[bool] = None


# kind -> (create schema, update schema)
RESOURCE_SCHEMAS: dict[str, tuple[type[BaseModel], type[BaseModel]]] = {
    "districts": (DistrictIn, DistrictPatch),
    "neighborhoods": (NeighborhoodIn, NeighborhoodPatch),
    "taxonomy_types": (TaxonomyTypeIn, TaxonomyTypePatch),
    "taxonomy_values": (TaxonomyValueIn, TaxonomyValuePatch),
    "languages": (LanguageIn, LanguagePatch),
    "tenant_locales": (TenantLocaleIn, TenantLocalePatch),
}
