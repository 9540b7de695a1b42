"""
Read-only reference data: geography, industries and tenant types
"""

from sqlmodel import Field, SQLModel
from typing import Optional


class Region(SQLModel, table=True):
    __tablename__ = "regions"

    region_id: Optional[int] = Field(default=None, primary_key=True)
    region_name: str = Field(index=True, max_length=100)


class Country(SQLModel, table=True):
    __tablename__ = "countries"

    country_id: Optional[int] = Field(default=None, primary_key=True)
    country_name: str = Field(index=True, max_length=100)
    country_code: Optional[str] = Field(default=None, max_length=10)
    region_id: Optional[int] = Field(default=None, foreign_key="regions.region_id", index=True)


class State(SQLModel, table=True):
    __tablename__ = "states"

    state_id: Optional[int] = Field(default=None, primary_key=True)
    state_name: str = Field(index=True, max_length=100)
    country_id: Optional[int] = Field(default=None, foreign_key="countries.country_id", index=True)


class City(SQLModel, table=True):
    __tablename__ = "cities"

    city_id: Optional[int] = Field(default=None, primary_key=True)
    city_name: str = Field(index=True, max_length=100)
    state_id: Optional[int] = Field(default=None, foreign_key="states.state_id", index=True)


class Industry(SQLModel, table=True):
    """Industry classification, optionally nested"""

    __tablename__ = "industries"

    industry_id: Optional[int] = Field(default=None, primary_key=True)
    industry_name: str = Field(max_length=150)
    industry_code: str = Field(unique=True, max_length=50)
    parent_industry_id: Optional[int] = Field(default=None, foreign_key="industries.industry_id")
    is_active: bool = Field(default=True)


class TenantType(SQLModel, table=True):
    __tablename__ = "tenant_types"

    tenant_type_id: Optional[int] = Field(default=None, primary_key=True)
    tenant_type_name: str = Field(unique=True, max_length=100)
