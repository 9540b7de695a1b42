"""
Reference data API endpoints (read-only)
"""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select
from typing import List, Optional

from iam_service.core.database import get_session
from iam_service.models.reference import City, Country, Industry, Region, State
from iam_service.schemas.reference import (
    CityResponse,
    CountryResponse,
    IndustryResponse,
    RegionResponse,
    StateResponse,
)

router = APIRouter()


@router.get("/regions", response_model=List[RegionResponse])
def list_regions(session: Session = Depends(get_session)):
    regions = session.exec(select(Region).order_by(Region.region_name)).all()
    return [RegionResponse.model_validate(r, from_attributes=True) for r in regions]


@router.get("/countries", response_model=List[CountryResponse])
def list_countries(
    region_id: Optional[int] = Query(default=None, alias="regionId"),
    session: Session = Depends(get_session),
):
    statement = select(Country).order_by(Country.country_name)
    if region_id is not None:
        statement = statement.where(Country.region_id == region_id)
    return [CountryResponse.model_validate(c, from_attributes=True) for c in session.exec(statement).all()]


@router.get("/states", response_model=List[StateResponse])
def list_states(
    country_id: Optional[int] = Query(default=None, alias="countryId"),
    session: Session = Depends(get_session),
):
    statement = select(State).order_by(State.state_name)
    if country_id is not None:
        statement = statement.where(State.country_id == country_id)
    return [StateResponse.model_validate(s, from_attributes=True) for s in session.exec(statement).all()]


@router.get("/cities", response_model=List[CityResponse])
def list_cities(
    state_id: Optional[int] = Query(default=None, alias="stateId"),
    session: Session = Depends(get_session),
):
    statement = select(City).order_by(City.city_name)
    if state_id is not None:
        statement = statement.where(City.state_id == state_id)
    return [CityResponse.model_validate(c, from_attributes=True) for c in session.exec(statement).all()]


@router.get("/industries", response_model=List[IndustryResponse])
def list_industries(session: Session = Depends(get_session)):
    industries = session.exec(
        select(Industry).where(Industry.is_active == True).order_by(Industry.industry_name)  # noqa: E712
    ).all()
    return [IndustryResponse.model_validate(i, from_attributes=True) for i in industries]
