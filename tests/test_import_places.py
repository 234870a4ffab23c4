"""Tests for the place import: area matching, lazy area cache, capital merge."""
import dataclasses
import logging
from unittest.mock import patch

import pytest
import requests
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

import import_places
from import_places import PlaceImportState, find_area_ids, load_areas_for_country, run_import
from models import Place
from mutations import upsert_area
from queries import get_areas_for_spatial_match
from wikidata_client import PlaceImportData


def _place(name, lat, lon, country="FRA", feature_type="city", qid=None, continent="Europe"):
    return PlaceImportData(
        name=name,
        latitude=lat,
        longitude=lon,
        continent_name=continent,
        country_code=country,
        feature_type=feature_type,
        wikidata_id=qid or f"Q-{name}",
        population=100000,
    )


PARIS = _place("Paris", 48.8566, 2.3522, qid="Q90")
LYON = _place("Lyon", 45.7640, 4.8357, qid="Q456")
SACRAMENTO = _place("Sacramento", 38.5816, -121.4944, "USA", "capital", "Q18013", "North America")


@pytest.fixture
def areas(session, square_geojson):
    def _area(gid, name, level, code, geojson):
        return upsert_area(session, {
            "name": name, "slug": name.lower(), "admin_type_name": "Region", "admin_level": level,
            "country_code": code, "continent_name": "Europe", "centroid_lat": 0.0,
            "centroid_lng": 0.0, "geoboundaries_id": gid, "geojson": geojson,
        })

    return {
        "idf": _area("FRA-ADM1-IDF", "Ile-de-France", 1, "FRA", square_geojson(1.5, 48, 3.5, 49.5)),
        "california": _area("USA-ADM1-CA", "California", 1, "USA", square_geojson(-125, 32, -114, 42)),
        "sac_county": _area("USA-ADM2-SAC", "Sacramento County", 2, "USA", square_geojson(-122, 38, -121, 39)),
    }


# ============================================
# matching
# ============================================

def test_place_inside_adm1_polygon(session, areas):
    assert find_area_ids(session, PlaceImportState(), PARIS) == (areas["idf"], None)


def test_place_outside_every_polygon(session, areas):
    assert find_area_ids(session, PlaceImportState(), LYON) == (None, None)


def test_adm2_matched_for_adm2_countries(session, areas):
    state = PlaceImportState(adm2_countries=["USA"])
    assert find_area_ids(session, state, SACRAMENTO) == (areas["california"], areas["sac_county"])


def test_adm2_ignored_for_other_countries(session, areas):
    state = PlaceImportState(adm2_countries=[])
    assert find_area_ids(session, state, SACRAMENTO) == (areas["california"], None)


def test_areas_loaded_once_per_country(session, areas):
    state = PlaceImportState(adm2_countries=[])
    with patch("import_places.get_areas_for_spatial_match", wraps=get_areas_for_spatial_match) as loader:
        for place in (PARIS, LYON, _place("Versailles", 48.8049, 2.1204)):
            find_area_ids(session, state, place)

    loader.assert_called_once_with(session, "FRA", 1)
    assert len(state.area_cache[("FRA", 1)]) == 1


def test_area_load_failure_is_cached_empty(session, caplog):
    state = PlaceImportState()
    with patch("import_places.get_areas_for_spatial_match",
               side_effect=OperationalError("SELECT", {}, Exception("db gone"))) as loader, \
            caplog.at_level(logging.WARNING):
        assert load_areas_for_country(session, state, "FRA", 1) == []
        assert load_areas_for_country(session, state, "FRA", 1) == []

    loader.assert_called_once()
    assert "Could not load ADM1 areas for FRA" in caplog.text


# ============================================
# run_import
# ============================================

def test_run_import_merges_capitals(session, areas):
    paris_city = _place("Paris", 48.8566, 2.3522, qid="Q90", feature_type="city")
    paris_capital = _place("Paris", 48.8566, 2.3522, qid="Q90", feature_type="capital")

    with patch("import_places.fetch_places", return_value=[paris_city, LYON]), \
            patch("import_places.fetch_capitals", return_value=[paris_capital, SACRAMENTO]):
        summary = run_import(session, PlaceImportState(), population_threshold=100000, include_capitals=True)

    assert summary == {"imported": 3, "failed": 0, "capitals": 2, "cities": 1}
    stored = {p.name: p for p in session.scalars(select(Place))}
    assert stored["Paris"].feature_type == "capital"
    assert stored["Paris"].adm1_id == areas["idf"]
    assert stored["Lyon"].adm1_id is None
    assert stored["Sacramento"].adm2_id == areas["sac_county"]


def test_run_import_without_capitals(session):
    with patch("import_places.fetch_places", return_value=[LYON]) as fetch, \
            patch("import_places.fetch_capitals") as capitals:
        summary = run_import(session, population_threshold=500000, include_capitals=False)

    fetch.assert_called_once_with(500000, False)
    capitals.assert_not_called()
    assert summary["imported"] == 1


def test_run_import_is_idempotent(session):
    with patch("import_places.fetch_places", return_value=[PARIS, LYON]), \
            patch("import_places.fetch_capitals", return_value=[]):
        run_import(session)
        run_import(session)

    assert len(session.scalars(select(Place)).all()) == 2


def test_failed_place_is_counted(session):
    nameless = dataclasses.replace(LYON, name="Ghost", wikidata_id="")
    state = PlaceImportState()
    with patch("import_places.fetch_places", return_value=[nameless, LYON]):
        summary = run_import(session, state, include_capitals=False)

    assert summary["imported"] == 1
    assert summary["failed"] == 1


def test_wikidata_failure_propagates(session):
    with patch("import_places.fetch_places", side_effect=requests.exceptions.Timeout("slow")):
        with pytest.raises(requests.exceptions.Timeout):
            run_import(session)


# ============================================
# main
# ============================================

def test_main_returns_error_on_wikidata_failure(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    with patch("import_places.fetch_places", side_effect=requests.exceptions.ConnectionError("down")):
        assert import_places.main(["--no-capitals"]) == 1


def test_main_without_database_url_fails(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert import_places.main([]) == 1


def test_main_passes_threshold(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    with patch("import_places.fetch_places", return_value=[]) as fetch, \
            patch("import_places.fetch_capitals", return_value=[]):
        assert import_places.main(["--min-population", "250000"]) == 0

    assert fetch.call_args[0][0] == 250000
