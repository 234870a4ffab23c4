"""Shared fixtures: in-memory SQLite store, Flask client, GeoJSON helpers."""
import json
from unittest.mock import MagicMock

import pytest
from shapely.geometry import box, mapping

from app import create_app
from database import create_engine_for, init_db, make_session_factory


@pytest.fixture
def session():
    """Session on a fresh in-memory database."""
    engine = create_engine_for("sqlite://")
    init_db(engine)
    db = make_session_factory(engine)()
    yield db
    db.close()
    engine.dispose()


@pytest.fixture
def app():
    app = create_app("sqlite://")
    app.config["TESTING"] = True
    yield app
    app.extensions["geoquiz_engine"].dispose()


@pytest.fixture
def app_session(app):
    """Session on the same database the app reads from."""
    db = app.extensions["geoquiz_sessions"]()
    yield db
    db.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def square_geojson():
    """Build the JSON text of a rectangular Feature."""
    def _make(minx, miny, maxx, maxy, **properties):
        return json.dumps({
            "type": "Feature",
            "properties": properties,
            "geometry": mapping(box(minx, miny, maxx, maxy)),
        })
    return _make


@pytest.fixture
def mock_response():
    """Build a fake requests.Response."""
    def _make(data=None, status_code=200):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = data
        return response
    return _make
