"""
Writes against the GeoQuiz store.

Areas are upserted by geoboundaries_id and places by wikidata_id, so running
an import twice updates records instead of duplicating them. Every upsert
commits on its own.
"""

import logging
from typing import Any, Dict, List, Mapping

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from errors import PayloadTooLargeError, StoreError
from models import Area, Geometry, Place

logger = logging.getLogger(__name__)

# Per-document limit of the store
MAX_DOCUMENT_SIZE = 1024 * 1024

# Rows deleted per clear_all_imported_data call
CLEAR_BATCH_SIZE = 500

AREA_FIELDS = (
    "name", "slug", "admin_type_name", "admin_level", "country_code",
    "continent_name", "parent_id", "centroid_lat", "centroid_lng", "geoboundaries_id",
)

PLACE_FIELDS = (
    "name", "latitude", "longitude", "continent_name", "country_code", "adm1_id",
    "adm2_id", "feature_type", "population", "image_url", "wikipedia_url", "wikidata_id",
)


def upsert_area(session: Session, area: Mapping[str, Any]) -> int:
    """
    Insert or update an area keyed on geoboundaries_id and return its id.

    A geojson value replaces the stored geometry in place; no geojson drops
    any geometry the area had. Raises PayloadTooLargeError before writing
    anything when the geometry is over MAX_DOCUMENT_SIZE.
    """
    geoboundaries_id = area.get("geoboundaries_id")
    if not geoboundaries_id:
        raise StoreError(f"Area {area.get('name')!r} has no geoboundaries_id")

    geojson = area.get("geojson")
    if geojson:
        size = len(geojson.encode("utf-8"))
        if size > MAX_DOCUMENT_SIZE:
            raise PayloadTooLargeError("geometries", size, MAX_DOCUMENT_SIZE)

    existing = session.scalar(select(Area).where(Area.geoboundaries_id == geoboundaries_id))

    geometry = None
    if geojson:
        if existing is not None and existing.geometry is not None:
            geometry = existing.geometry
            geometry.geojson = geojson
        else:
            geometry = Geometry(geojson=geojson)

    values = {field: area.get(field) for field in AREA_FIELDS}

    if existing is not None:
        stale = existing.geometry if geometry is None else None
        for field, value in values.items():
            setattr(existing, field, value)
        existing.geometry = geometry
        if stale is not None:
            session.delete(stale)
        record = existing
    else:
        record = Area(geometry=geometry, **values)
        session.add(record)

    session.commit()
    return record.id


def upsert_areas(session: Session, areas: List[Mapping[str, Any]]) -> List[int]:
    return [upsert_area(session, area) for area in areas]


def upsert_place(session: Session, place: Mapping[str, Any]) -> int:
    """Insert or update a place keyed on wikidata_id and return its id."""
    wikidata_id = place.get("wikidata_id")
    if not wikidata_id:
        raise StoreError(f"Place {place.get('name')!r} has no wikidata_id")

    existing = session.scalar(select(Place).where(Place.wikidata_id == wikidata_id))
    values = {field: place.get(field) for field in PLACE_FIELDS}

    if existing is not None:
        for field, value in values.items():
            setattr(existing, field, value)
        record = existing
    else:
        record = Place(**values)
        session.add(record)

    session.commit()
    return record.id


def upsert_places(session: Session, places: List[Mapping[str, Any]]) -> List[int]:
    return [upsert_place(session, place) for place in places]


def _detach_areas(session: Session, area_ids: List[int]) -> None:
    """Null out parent and place pointers to areas about to be deleted."""
    session.execute(update(Area).where(Area.parent_id.in_(area_ids)).values(parent_id=None))
    session.execute(update(Place).where(Place.adm1_id.in_(area_ids)).values(adm1_id=None))
    session.execute(update(Place).where(Place.adm2_id.in_(area_ids)).values(adm2_id=None))


def clear_all_imported_data(session: Session, batch_size: int = CLEAR_BATCH_SIZE) -> Dict[str, Any]:
    """
    Delete up to batch_size places and batch_size areas (with their geometries).

    Call repeatedly until the returned "done" is True.
    """
    place_ids = list(session.scalars(select(Place.id).limit(batch_size)))
    if place_ids:
        session.execute(delete(Place).where(Place.id.in_(place_ids)))

    rows = session.execute(select(Area.id, Area.geometry_id).limit(batch_size)).all()
    area_ids = [row.id for row in rows]
    geometry_ids = [row.geometry_id for row in rows if row.geometry_id is not None]

    if area_ids:
        _detach_areas(session, area_ids)
        session.execute(delete(Area).where(Area.id.in_(area_ids)))
    if geometry_ids:
        session.execute(delete(Geometry).where(Geometry.id.in_(geometry_ids)))

    session.commit()

    has_more_places = session.scalar(select(Place.id).limit(1)) is not None
    has_more_areas = session.scalar(select(Area.id).limit(1)) is not None

    return {
        "deleted_places": len(place_ids),
        "deleted_areas": len(area_ids),
        "deleted_geometries": len(geometry_ids),
        "done": not has_more_places and not has_more_areas,
    }


def clear_all(session: Session) -> Dict[str, int]:
    """Delete every place, area and geometry in one go."""
    counts = {
        "deleted_places": session.scalar(select(func.count()).select_from(Place)),
        "deleted_areas": session.scalar(select(func.count()).select_from(Area)),
        "deleted_geometries": session.scalar(select(func.count()).select_from(Geometry)),
    }

    session.execute(delete(Place))
    session.execute(update(Area).values(parent_id=None, geometry_id=None))
    session.execute(delete(Area))
    session.execute(delete(Geometry))
    session.commit()

    logger.info(
        f"Cleared {counts['deleted_places']} places, {counts['deleted_areas']} areas, "
        f"{counts['deleted_geometries']} geometries"
    )
    return counts
