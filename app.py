#!/usr/bin/env python3
"""GeoQuiz JSON API over the area/place store."""

import logging
import os
from typing import Optional

from flask import Flask, current_app, g, jsonify, request

from config import CONTINENTS, get_database_url
from database import create_engine_for, init_db, make_session_factory
from geo_utils import generate_scoped_slug
from queries import (
    count_places,
    get_area_by_id,
    get_area_by_slug,
    get_areas_with_geometries,
    get_capitals,
    get_child_areas,
    get_countries_by_continent,
    get_places,
    has_children,
    list_continents,
    scope_from_filters,
)

logger = logging.getLogger(__name__)

QUIZ_TYPES = ("cities", "capitals", "regions")

# Quiz type -> place feature type
QUIZ_FEATURE_TYPES = {
    "cities": "city",
    "capitals": "capital",
}


def create_app(database_url: Optional[str] = None) -> Flask:
    app = Flask(__name__)
    app.config["DATABASE_URL"] = (
        database_url or get_database_url(required=False) or "sqlite:///geoquiz.db"
    )

    engine = create_engine_for(app.config["DATABASE_URL"])
    init_db(engine)
    app.extensions["geoquiz_engine"] = engine
    app.extensions["geoquiz_sessions"] = make_session_factory(engine)

    app.teardown_appcontext(close_session)
    app.register_error_handler(404, not_found)
    register_routes(app)
    return app


def get_session():
    if "db_session" not in g:
        g.db_session = current_app.extensions["geoquiz_sessions"]()
    return g.db_session


def close_session(exc=None):
    session = g.pop("db_session", None)
    if session is not None:
        session.close()


def not_found(e):
    return jsonify({"error": "Not found"}), 404


def _place_scope():
    return scope_from_filters(
        continent_name=request.args.get("continent") or None,
        country_code=(request.args.get("country") or "").upper() or None,
        adm1_id=request.args.get("adm1", type=int),
        adm2_id=request.args.get("adm2", type=int),
    )


def register_routes(app: Flask) -> None:

    # =========================================================================
    # CONTINENTS / AREAS
    # =========================================================================

    @app.route("/api/continents")
    def api_continents():
        return jsonify(list_continents())

    @app.route("/api/continents/<name>/countries")
    def api_continent_countries(name):
        if name not in CONTINENTS:
            return jsonify({"error": f"Unknown continent: {name}"}), 404
        countries = get_countries_by_continent(get_session(), name)
        return jsonify([c.to_dict() for c in countries])

    @app.route("/api/areas/<int:area_id>")
    def api_area(area_id):
        area = get_area_by_id(get_session(), area_id)
        if area is None:
            return jsonify({"error": f"Area {area_id} not found"}), 404
        return jsonify(area.to_dict())

    @app.route("/api/areas/<int:area_id>/children")
    def api_area_children(area_id):
        return jsonify([a.to_dict() for a in get_child_areas(get_session(), area_id)])

    @app.route("/api/areas/<int:area_id>/has-children")
    def api_area_has_children(area_id):
        return jsonify({"has_children": has_children(get_session(), area_id)})

    @app.route("/api/areas/by-slug/<slug>")
    def api_area_by_slug(slug):
        area = get_area_by_slug(get_session(), slug)
        if area is None:
            return jsonify({"error": f"No area with slug {slug}"}), 404
        return jsonify(area.to_dict())

    @app.route("/api/areas/geometries")
    def api_area_geometries():
        parent = request.args.get("parent", type=int)
        continent = request.args.get("continent")
        level = request.args.get("level", type=int)

        if parent is not None:
            areas = get_areas_with_geometries(get_session(), parent_area_id=parent)
        elif continent and level is not None:
            areas = get_areas_with_geometries(get_session(), continent_name=continent, admin_level=level)
        else:
            return jsonify({"error": "parent, or continent and level, required"}), 400
        return jsonify(areas)

    # =========================================================================
    # PLACES
    # =========================================================================

    @app.route("/api/places")
    def api_places():
        places = get_places(
            get_session(),
            _place_scope(),
            feature_type=request.args.get("featureType") or None,
            min_population=request.args.get("minPop", type=int),
        )
        return jsonify([p.to_dict() for p in places])

    @app.route("/api/places/count")
    def api_places_count():
        count = count_places(
            get_session(),
            _place_scope(),
            feature_type=request.args.get("featureType") or None,
            min_population=request.args.get("minPop", type=int),
        )
        return jsonify({"count": count})

    @app.route("/api/capitals")
    def api_capitals():
        return jsonify([p.to_dict() for p in get_capitals(get_session(), _place_scope())])

    # =========================================================================
    # QUIZ
    # =========================================================================

    @app.route("/api/quiz")
    def api_quiz():
        """
        Quiz items for the URL parameters continent, country, adm1, adm2 (slugs),
        type (cities | capitals | regions) and minPop.
        """
        session = get_session()
        quiz_type = request.args.get("type", "cities")
        if quiz_type not in QUIZ_TYPES:
            return jsonify({"error": f"type must be one of {', '.join(QUIZ_TYPES)}"}), 400

        continent = request.args.get("continent") or None
        country = (request.args.get("country") or "").upper() or None
        min_pop = request.args.get("minPop", type=int)

        areas = {}
        for level in ("adm1", "adm2"):
            slug = request.args.get(level)
            if slug:
                area = get_area_by_slug(session, slug)
                if area is None:
                    return jsonify({"error": f"Unknown {level}: {slug}"}), 404
                areas[level] = area

        adm1 = areas.get("adm1")
        adm2 = areas.get("adm2")

        if quiz_type in QUIZ_FEATURE_TYPES:
            scope = scope_from_filters(
                continent_name=continent,
                country_code=country,
                adm1_id=adm1.id if adm1 else None,
                adm2_id=adm2.id if adm2 else None,
            )
            places = get_places(session, scope, QUIZ_FEATURE_TYPES[quiz_type], min_pop)
            return jsonify({"type": quiz_type, "places": [p.to_dict() for p in places]})

        if adm1 is not None:
            regions = get_areas_with_geometries(session, parent_area_id=adm1.id)
        elif country:
            country_area = get_area_by_slug(session, generate_scoped_slug("", country, 0))
            if country_area is None:
                return jsonify({"error": f"Unknown country: {country}"}), 404
            regions = get_areas_with_geometries(session, parent_area_id=country_area.id)
        elif continent:
            regions = get_areas_with_geometries(session, continent_name=continent, admin_level=0)
        else:
            return jsonify({"error": "A regions quiz needs a continent, country or adm1"}), 400

        return jsonify({"type": quiz_type, "areas": regions})


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    create_app().run(host="127.0.0.1", port=int(os.getenv("PORT", "5000")), debug=True)
