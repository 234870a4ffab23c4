"""Tests for area/place upserts and the clear operations."""
import pytest
from sqlalchemy import func, select

from errors import PayloadTooLargeError, StoreError
from models import Area, Geometry, Place
from mutations import (
    MAX_DOCUMENT_SIZE,
    clear_all,
    clear_all_imported_data,
    upsert_area,
    upsert_place,
)


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


def _area(geoboundaries_id="FRA", name="France", level=0, parent_id=None, geojson=None, code="FRA"):
    return {
        "name": name,
        "slug": name.lower(),
        "admin_type_name": "Country" if level == 0 else "Region",
        "admin_level": level,
        "country_code": code,
        "continent_name": "Europe",
        "parent_id": parent_id,
        "centroid_lat": 46.0,
        "centroid_lng": 2.0,
        "geoboundaries_id": geoboundaries_id,
        "geojson": geojson,
    }


def _place(wikidata_id="Q90", name="Paris", adm1_id=None, population=2161000):
    return {
        "name": name,
        "latitude": 48.8566,
        "longitude": 2.3522,
        "continent_name": "Europe",
        "country_code": "FRA",
        "adm1_id": adm1_id,
        "adm2_id": None,
        "feature_type": "capital",
        "population": population,
        "image_url": None,
        "wikipedia_url": None,
        "wikidata_id": wikidata_id,
    }


# ============================================
# upsert_area
# ============================================

def test_upsert_area_is_idempotent(session, square_geojson):
    first = upsert_area(session, _area(geojson=square_geojson(0, 0, 1, 1)))
    second = upsert_area(session, _area(name="French Republic", geojson=square_geojson(0, 0, 1, 1)))

    assert first == second
    assert _count(session, Area) == 1
    assert _count(session, Geometry) == 1
    assert session.get(Area, first).name == "French Republic"


def test_upsert_area_replaces_geometry_in_place(session, square_geojson):
    area_id = upsert_area(session, _area(geojson=square_geojson(0, 0, 1, 1)))
    geometry_id = session.get(Area, area_id).geometry_id

    upsert_area(session, _area(geojson=square_geojson(0, 0, 2, 2)))

    area = session.get(Area, area_id)
    assert area.geometry_id == geometry_id
    assert area.geometry.geojson == square_geojson(0, 0, 2, 2)
    assert _count(session, Geometry) == 1


def test_upsert_area_without_geojson_drops_old_geometry(session, square_geojson):
    area_id = upsert_area(session, _area(geojson=square_geojson(0, 0, 1, 1)))
    upsert_area(session, _area(geojson=None))

    assert session.get(Area, area_id).geometry_id is None
    assert _count(session, Geometry) == 0


def test_upsert_area_too_large_writes_nothing(session):
    huge = "x" * (MAX_DOCUMENT_SIZE + 1)

    with pytest.raises(PayloadTooLargeError) as excinfo:
        upsert_area(session, _area(geojson=huge))

    assert "too large" in str(excinfo.value)
    assert _count(session, Area) == 0
    assert _count(session, Geometry) == 0


def test_upsert_area_requires_geoboundaries_id(session):
    with pytest.raises(StoreError):
        upsert_area(session, _area(geoboundaries_id=None))


def test_upsert_area_links_parent(session):
    country_id = upsert_area(session, _area())
    region_id = upsert_area(session, _area("FRA-ADM1-IDF", "Ile-de-France", 1, parent_id=country_id))
    assert session.get(Area, region_id).parent_id == country_id


# ============================================
# upsert_place
# ============================================

def test_upsert_place_is_idempotent(session):
    first = upsert_place(session, _place(population=2000000))
    second = upsert_place(session, _place(population=2161000))

    assert first == second
    assert _count(session, Place) == 1
    assert session.get(Place, first).population == 2161000


def test_upsert_place_requires_wikidata_id(session):
    with pytest.raises(StoreError):
        upsert_place(session, _place(wikidata_id=None))


# ============================================
# clear
# ============================================

def _populate(session, square_geojson):
    country_id = upsert_area(session, _area(geojson=square_geojson(0, 0, 10, 10)))
    for i in range(3):
        upsert_area(session, _area(f"FRA-ADM1-{i}", f"Region {i}", 1, parent_id=country_id,
                                   geojson=square_geojson(i, 0, i + 1, 1)))
    for i in range(3):
        upsert_place(session, _place(f"Q{i}", f"Town {i}", adm1_id=country_id))


def test_clear_all_imported_data_paginates(session, square_geojson):
    _populate(session, square_geojson)

    first = clear_all_imported_data(session, batch_size=2)
    assert first["deleted_places"] == 2
    assert first["deleted_areas"] == 2
    assert first["deleted_geometries"] == 2
    assert first["done"] is False

    second = clear_all_imported_data(session, batch_size=2)
    assert second["deleted_places"] == 1
    assert second["deleted_areas"] == 2
    assert second["done"] is True

    assert _count(session, Area) == 0
    assert _count(session, Place) == 0
    assert _count(session, Geometry) == 0


def test_clear_all_imported_data_on_empty_store(session):
    assert clear_all_imported_data(session) == {
        "deleted_places": 0,
        "deleted_areas": 0,
        "deleted_geometries": 0,
        "done": True,
    }


def test_clear_all_returns_counts(session, square_geojson):
    _populate(session, square_geojson)

    counts = clear_all(session)

    assert counts == {"deleted_places": 3, "deleted_areas": 4, "deleted_geometries": 4}
    assert _count(session, Area) == 0
    assert _count(session, Place) == 0
    assert _count(session, Geometry) == 0
