"""
Pydantic v2 schemas for service and response-time exclusions.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ratecard.models import ServiceLevel, parse_service_type


def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class ServiceExclusionIn(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    country_code: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{2}$")
    city_id: Optional[int] = Field(default=None, ge=1)
    service_type: str = Field(..., min_length=1, max_length=50)

    @field_validator("service_type")
    @classmethod
    def validate_service_type(cls, v: str) -> str:
        return parse_service_type(v)


class BulkServiceExclusionsIn(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    exclusions: list[ServiceExclusionIn] = Field(default_factory=list)


class BulkRemoveServiceExclusionsIn(BaseModel):
    """Filters for removing service exclusions.  Omitted filters match everything."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    service_types: Optional[list[str]] = None
    country_codes: Optional[list[str]] = None
    city_ids: Optional[list[int]] = None

    @field_validator("service_types")
    @classmethod
    def validate_service_types(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return None
        return [parse_service_type(item) for item in v]


class ServiceExclusionOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    supplier_id: int
    country_code: Optional[str] = None
    city_id: Optional[int] = None
    service_type: str


class ResponseTimeExclusionIn(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    country_code: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{2}$")
    city_id: Optional[int] = Field(default=None, ge=1)
    service_type: str = Field(..., min_length=1, max_length=50)
    service_level: ServiceLevel

    @field_validator("service_type")
    @classmethod
    def validate_service_type(cls, v: str) -> str:
        return parse_service_type(v)


class ResponseTimeExclusionOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    supplier_id: int
    country_code: Optional[str] = None
    city_id: Optional[int] = None
    service_type: str
    service_level: ServiceLevel


class ExclusionCountOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    count: int


class ResyncOut(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    updated_count: int = Field(description="Rate rows whose serviceable flag changed")
