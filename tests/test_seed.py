"""Tests for the demo dataset and the admin clear commands."""
import pytest
from sqlalchemy import func, select

import seed
from errors import StoreError
from models import Area, Place
from queries import get_area_by_slug
from seed import COUNTRIES, PLACES, US_STATE_CAPITALS, clear_imported, seed_all


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


def test_seed_all_counts(session):
    result = seed_all(session)

    assert result == {
        "countries": 25,
        "states": 20,
        "places": len(PLACES) + len(US_STATE_CAPITALS),
    }
    assert len(COUNTRIES) == 25
    assert _count(session, Area) == 45
    assert _count(session, Place) == result["places"]


def test_seed_refuses_non_empty_store(session):
    seed_all(session)
    with pytest.raises(StoreError, match="already has data"):
        seed_all(session)


def test_seeded_slugs_and_hierarchy(session):
    seed_all(session)

    usa = get_area_by_slug(session, "usa")
    california = get_area_by_slug(session, "usa-california")
    assert usa.name == "United States"
    assert california.parent_id == usa.id
    assert california.continent_name == "North America"
    assert get_area_by_slug(session, "fra-ile-de-france").admin_type_name == "Région"


def test_state_capitals_point_at_their_state(session):
    seed_all(session)

    california = get_area_by_slug(session, "usa-california")
    sacramento = session.scalar(select(Place).where(Place.name == "Sacramento"))
    assert sacramento.adm1_id == california.id
    assert sacramento.feature_type == "capital"


def test_clear_imported_empties_store(session):
    seed_all(session)

    totals = clear_imported(session)

    assert totals["deleted_areas"] == 45
    assert totals["deleted_places"] == len(PLACES) + len(US_STATE_CAPITALS)
    assert _count(session, Area) == 0
    assert _count(session, Place) == 0

    # Empty again, so seeding works a second time
    seed_all(session)


def test_main_seeds_and_clears(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'seed.db'}")

    assert seed.main([]) == 0
    assert seed.main([]) == 1
    assert seed.main(["--clear"]) == 0
    assert seed.main([]) == 0


def test_main_rejects_both_clear_flags():
    with pytest.raises(SystemExit):
        seed.main(["--clear", "--clear-imported"])
