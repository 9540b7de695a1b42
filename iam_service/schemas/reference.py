"""
Pydantic schemas for reference data
"""

from typing import Optional

from iam_service.schemas.common import CamelModel


class RegionResponse(CamelModel):
    region_id: int
    region_name: str


class CountryResponse(CamelModel):
    country_id: int
    country_name: str
    country_code: Optional[str] = None
    region_id: Optional[int] = None


class StateResponse(CamelModel):
    state_id: int
    state_name: str
    country_id: Optional[int] = None


class CityResponse(CamelModel):
    city_id: int
    city_name: str
    state_id: Optional[int] = None


class IndustryResponse(CamelModel):
    industry_id: int
    industry_name: str
    industry_code: str
    parent_industry_id: Optional[int] = None


class TenantTypeResponse(CamelModel):
    tenant_type_id: int
    tenant_type_name: str
