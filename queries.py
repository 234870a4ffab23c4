"""
Read-only queries over areas and places.

Place queries take a QueryScope (world, continent, country, ADM1 or ADM2).
The scope picks the indexed column to filter on; feature type and minimum
population are then applied in memory.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, selectinload

from config import CONTINENTS
from models import Area, Place


@dataclass(frozen=True)
class WorldScope:
    pass


@dataclass(frozen=True)
class ContinentScope:
    continent_name: str


@dataclass(frozen=True)
class CountryScope:
    country_code: str


@dataclass(frozen=True)
class Adm1Scope:
    adm1_id: int


@dataclass(frozen=True)
class Adm2Scope:
    adm2_id: int


QueryScope = Union[WorldScope, ContinentScope, CountryScope, Adm1Scope, Adm2Scope]


def scope_from_filters(
    continent_name: Optional[str] = None,
    country_code: Optional[str] = None,
    adm1_id: Optional[int] = None,
    adm2_id: Optional[int] = None,
) -> QueryScope:
    """Most specific scope among the given filters (ADM2 > ADM1 > country > continent > world)."""
    if adm2_id:
        return Adm2Scope(adm2_id)
    if adm1_id:
        return Adm1Scope(adm1_id)
    if country_code:
        return CountryScope(country_code)
    if continent_name:
        return ContinentScope(continent_name)
    return WorldScope()


def select_places(scope: QueryScope, feature_type: Optional[str] = None) -> Select:
    """
    Build the index-backed SELECT for a scope.

    feature_type is pushed into the query only where a composite
    (scope, feature_type) index exists.
    """
    stmt = select(Place)
    if isinstance(scope, Adm2Scope):
        stmt = stmt.where(Place.adm2_id == scope.adm2_id)
    elif isinstance(scope, Adm1Scope):
        stmt = stmt.where(Place.adm1_id == scope.adm1_id)
    elif isinstance(scope, CountryScope):
        stmt = stmt.where(Place.country_code == scope.country_code)
        if feature_type:
            stmt = stmt.where(Place.feature_type == feature_type)
    elif isinstance(scope, ContinentScope):
        stmt = stmt.where(Place.continent_name == scope.continent_name)
        if feature_type:
            stmt = stmt.where(Place.feature_type == feature_type)
    elif not isinstance(scope, WorldScope):
        raise TypeError(f"Unknown query scope: {scope!r}")
    return stmt.order_by(Place.id)


def _filter_places(places: List[Place], feature_type: Optional[str], min_population: Optional[int]) -> List[Place]:
    if feature_type:
        places = [p for p in places if p.feature_type == feature_type]
    if min_population:
        places = [p for p in places if p.population and p.population >= min_population]
    return places


def get_places(
    session: Session,
    scope: QueryScope = WorldScope(),
    feature_type: Optional[str] = None,
    min_population: Optional[int] = None,
) -> List[Place]:
    """
    Places in a scope, optionally filtered.

    min_population only applies when truthy; it then also drops places with
    no population.
    """
    places = list(session.scalars(select_places(scope)))
    return _filter_places(places, feature_type, min_population)


def count_places(
    session: Session,
    scope: QueryScope = WorldScope(),
    feature_type: Optional[str] = None,
    min_population: Optional[int] = None,
) -> int:
    return len(get_places(session, scope, feature_type, min_population))


def get_capitals(session: Session, scope: QueryScope = WorldScope()) -> List[Place]:
    places = session.scalars(select_places(scope, feature_type="capital"))
    return [p for p in places if p.feature_type == "capital"]


# ============================================
# AREAS
# ============================================

def list_continents() -> List[str]:
    return list(CONTINENTS)


def get_countries_by_continent(session: Session, continent_name: str) -> List[Area]:
    stmt = (
        select(Area)
        .where(Area.continent_name == continent_name, Area.admin_level == 0)
        .order_by(Area.name)
    )
    return list(session.scalars(stmt))


def get_child_areas(session: Session, parent_area_id: int) -> List[Area]:
    stmt = select(Area).where(Area.parent_id == parent_area_id).order_by(Area.name)
    return list(session.scalars(stmt))


def get_area_by_slug(session: Session, slug: str) -> Optional[Area]:
    """First area with this slug. Slugs can repeat, so lookups by slug are best-effort."""
    stmt = select(Area).where(Area.slug == slug).order_by(Area.id).limit(1)
    return session.scalar(stmt)


def get_area_by_id(session: Session, area_id: int) -> Optional[Area]:
    return session.get(Area, area_id)


def get_area_by_geoboundaries_id(session: Session, geoboundaries_id: str) -> Optional[Area]:
    return session.scalar(select(Area).where(Area.geoboundaries_id == geoboundaries_id))


def has_children(session: Session, parent_area_id: int) -> bool:
    stmt = select(Area.id).where(Area.parent_id == parent_area_id).limit(1)
    return session.scalar(stmt) is not None


def get_areas_with_geometries(
    session: Session,
    parent_area_id: Optional[int] = None,
    continent_name: Optional[str] = None,
    admin_level: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Areas with their GeoJSON inline, selected by parent or by continent + level.

    Used to draw the polygons of a regions quiz.
    """
    stmt = select(Area).options(selectinload(Area.geometry))
    if parent_area_id is not None:
        stmt = stmt.where(Area.parent_id == parent_area_id)
    elif continent_name is not None and admin_level is not None:
        stmt = stmt.where(Area.continent_name == continent_name, Area.admin_level == admin_level)
    else:
        raise ValueError("Either parent_area_id or continent_name and admin_level are required")

    return [area.to_dict(include_geojson=True) for area in session.scalars(stmt.order_by(Area.name))]


def get_areas_for_spatial_match(session: Session, country_code: str, admin_level: int) -> List[Dict[str, Any]]:
    """Areas of one country and level with GeoJSON inline, in insertion order."""
    stmt = (
        select(Area)
        .options(selectinload(Area.geometry))
        .where(Area.country_code == country_code, Area.admin_level == admin_level)
        .order_by(Area.id)
    )
    return [area.to_dict(include_geojson=True) for area in session.scalars(stmt)]
