"""Tests for the staged boundary import: parent linkage, spatial fallback, failures."""
import dataclasses
import logging
from unittest.mock import patch

import pytest
from shapely.geometry import box
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

import import_areas
from geoboundaries_downloader import process_boundary_feature
from import_areas import BoundaryImportState, import_area_batch, resolve_parent_id, run_import
from models import Area, Geometry
from queries import get_area_by_geoboundaries_id, get_area_by_slug


def _metadata(iso, level):
    return {"boundaryID": f"{iso}-ADM{level}-1", "boundaryISO": iso, "boundaryType": f"ADM{level}", "Continent": "Africa"}


def _country(iso, geom):
    return process_boundary_feature({"shapeName": f"{iso} Land"}, geom, _metadata(iso, 0))


def _adm1(iso, name, geom):
    return process_boundary_feature({"shapeName": name, "shapeGroup": iso}, geom, _metadata(iso, 1), iso)


def _adm2(iso, name, shape_group, geom):
    properties = {"shapeName": name, "shapeID": f"{iso}-{name}", "shapeGroup": shape_group}
    return process_boundary_feature(properties, geom, _metadata(iso, 2), iso)


COUNTRIES = [_country("AAA", box(0, 0, 10, 10)), _country("BBB", box(20, 0, 30, 10))]
ADM1 = [
    _adm1("AAA", "Central", box(0, 0, 5, 10)),
    _adm1("AAA", "Coast", box(5, 0, 10, 10)),
    _adm1("BBB", "Central", box(20, 0, 25, 10)),
]


def _run(session, adm2=(), **kwargs):
    with patch("import_areas.fetch_all_countries", return_value=list(COUNTRIES)), \
            patch("import_areas.fetch_adm1_for_countries", return_value=list(ADM1)), \
            patch("import_areas.fetch_adm2_for_countries", return_value=list(adm2)) as fetch_adm2:
        summary = run_import(session, adm1_countries=["AAA", "BBB"], **kwargs)
    return summary, fetch_adm2


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


def test_same_name_in_two_countries_gets_two_areas(session):
    summary, _ = _run(session, adm2_countries=[])

    assert summary == {"countries": 2, "adm1": 3, "adm2": 0, "skipped": 0, "total": 5}
    aaa = get_area_by_slug(session, "aaa-central")
    bbb = get_area_by_slug(session, "bbb-central")
    assert aaa.id != bbb.id
    assert aaa.parent_id == get_area_by_slug(session, "aaa").id
    assert bbb.parent_id == get_area_by_slug(session, "bbb").id


def test_adm2_stage_skipped_without_countries(session):
    _, fetch_adm2 = _run(session, adm2_countries=[])
    fetch_adm2.assert_not_called()


def test_adm2_links_to_adm1_by_shape_group(session):
    district = _adm2("AAA", "Hill", "Coast", box(6, 1, 7, 2))
    summary, _ = _run(session, adm2=[district], adm2_countries=["AAA"])

    assert summary["adm2"] == 1
    hill = get_area_by_geoboundaries_id(session, "AAA-ADM2-AAA-Hill")
    assert hill.parent_id == get_area_by_geoboundaries_id(session, "AAA-ADM1-Coast").id


def test_adm2_falls_back_to_spatial_parent(session):
    """shapeGroup is just the ISO code; the district's interior point picks the ADM1."""
    district = _adm2("AAA", "Valley", "AAA", box(1, 1, 2, 2))
    assert district.parent_geoboundaries_id == "AAA-ADM1-AAA"

    _run(session, adm2=[district], adm2_countries=["AAA"])

    valley = get_area_by_geoboundaries_id(session, "AAA-ADM2-AAA-Valley")
    assert valley.parent_id == get_area_by_slug(session, "aaa-central").id


def test_adm2_without_any_parent_is_kept_orphaned(session, caplog):
    stray = _adm2("AAA", "Offshore", "AAA", box(50, 50, 51, 51))

    with caplog.at_level(logging.WARNING):
        summary, _ = _run(session, adm2=[stray], adm2_countries=["AAA"])

    assert summary["adm2"] == 1
    assert get_area_by_geoboundaries_id(session, "AAA-ADM2-AAA-Offshore").parent_id is None
    assert "No parent found for Offshore" in caplog.text


def test_rerun_updates_instead_of_duplicating(session):
    _run(session, adm2_countries=[])
    _run(session, adm2_countries=[])

    assert _count(session, Area) == 5
    assert _count(session, Geometry) == 5


def test_too_large_geometry_is_imported_without_polygon(session):
    with patch("mutations.MAX_DOCUMENT_SIZE", 10):
        summary, _ = _run(session, adm2_countries=[])

    assert summary["total"] == 5
    assert summary["skipped"] == 0
    assert _count(session, Geometry) == 0
    assert get_area_by_slug(session, "aaa-central").geometry_id is None


def test_failed_area_is_skipped(session):
    state = BoundaryImportState()
    broken = dataclasses.replace(COUNTRIES[0], geoboundaries_id="")

    imported = import_area_batch(session, state, [broken, COUNTRIES[1]])

    assert imported == 1
    assert state.skipped == 1
    assert list(state.id_mapping) == ["BBB"]


def test_parent_lookup_failure_skips_only_that_area(session):
    state = BoundaryImportState()
    db_error = OperationalError("SELECT", {}, Exception("db gone"))

    with patch("import_areas.get_area_by_geoboundaries_id", side_effect=db_error):
        imported = import_area_batch(session, state, [ADM1[0], COUNTRIES[1]])

    assert imported == 1
    assert state.skipped == 1
    assert list(state.id_mapping) == ["BBB"]


def test_resolve_parent_uses_store_when_mapping_is_empty(session):
    _run(session, adm2_countries=[])
    state = BoundaryImportState()

    parent_id = resolve_parent_id(session, state, ADM1[0])

    assert parent_id == get_area_by_slug(session, "aaa").id
    assert state.id_mapping["AAA"] == parent_id


def test_resolve_parent_for_country_is_none(session):
    assert resolve_parent_id(session, BoundaryImportState(), COUNTRIES[0]) is None


# ============================================
# main
# ============================================

def test_main_without_database_url_fails(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert import_areas.main([]) == 1


def test_main_imports_into_configured_database(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'geoquiz.db'}")

    with patch("import_areas.fetch_all_countries", return_value=list(COUNTRIES)), \
            patch("import_areas.fetch_adm1_for_countries", return_value=list(ADM1)) as fetch_adm1, \
            patch("import_areas.fetch_adm2_for_countries", return_value=[]):
        assert import_areas.main(["--adm1", "aaa, bbb", "--adm2", ""]) == 0

    assert fetch_adm1.call_args[0][0] == ["AAA", "BBB"]


@pytest.mark.parametrize("raw, expected", [
    ("USA,FRA", ["USA", "FRA"]),
    (" usa , ", ["USA"]),
    ("", []),
])
def test_country_list_argument(raw, expected):
    assert import_areas._country_list(raw) == expected
