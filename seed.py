#!/usr/bin/env python3
"""
Demo dataset and admin operations for the GeoQuiz store.

Usage:
    python seed.py                    # load the demo dataset into an empty store
    python seed.py --clear            # delete everything
    python seed.py --clear-imported   # delete imported data in batches of 500
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_database_url
from database import session_scope
from errors import GeoQuizError, StoreError
from geo_utils import generate_scoped_slug
from models import Area, Place
from mutations import clear_all, clear_all_imported_data

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# name, ISO3, continent, centroid lat, centroid lng
COUNTRIES = [
    # Europe
    ("France", "FRA", "Europe", 46.2276, 2.2137),
    ("Germany", "DEU", "Europe", 51.1657, 10.4515),
    ("Italy", "ITA", "Europe", 41.8719, 12.5674),
    ("Spain", "ESP", "Europe", 40.4637, -3.7492),
    ("United Kingdom", "GBR", "Europe", 55.3781, -3.4360),
    ("Poland", "POL", "Europe", 51.9194, 19.1451),
    ("Netherlands", "NLD", "Europe", 52.1326, 5.2913),
    ("Belgium", "BEL", "Europe", 50.5039, 4.4699),
    ("Sweden", "SWE", "Europe", 60.1282, 18.6435),
    ("Portugal", "PRT", "Europe", 39.3999, -8.2245),
    # North America
    ("United States", "USA", "North America", 37.0902, -95.7129),
    ("Canada", "CAN", "North America", 56.1304, -106.3468),
    ("Mexico", "MEX", "North America", 23.6345, -102.5528),
    # Asia
    ("Japan", "JPN", "Asia", 36.2048, 138.2529),
    ("China", "CHN", "Asia", 35.8617, 104.1954),
    ("India", "IND", "Asia", 20.5937, 78.9629),
    ("Indonesia", "IDN", "Asia", -0.7893, 113.9213),
    ("South Korea", "KOR", "Asia", 35.9078, 127.7669),
    # South America
    ("Brazil", "BRA", "South America", -14.2350, -51.9253),
    ("Argentina", "ARG", "South America", -38.4161, -63.6167),
    # Africa
    ("South Africa", "ZAF", "Africa", -30.5595, 22.9375),
    ("Egypt", "EGY", "Africa", 26.8206, 30.8025),
    ("Nigeria", "NGA", "Africa", 9.0820, 8.6753),
    # Oceania
    ("Australia", "AUS", "Oceania", -25.2744, 133.7751),
    ("New Zealand", "NZL", "Oceania", -40.9006, 174.8860),
]

# ISO3 -> [(name, admin type, centroid lat, centroid lng)]
STATES = {
    "USA": [
        ("California", "State", 36.7783, -119.4179),
        ("Texas", "State", 31.9686, -99.9018),
        ("New York", "State", 42.1657, -74.9481),
        ("Florida", "State", 27.6648, -81.5158),
        ("Illinois", "State", 40.6331, -89.3985),
        ("Pennsylvania", "State", 41.2033, -77.1945),
        ("Ohio", "State", 40.4173, -82.9071),
        ("Georgia", "State", 32.1656, -82.9001),
        ("North Carolina", "State", 35.7596, -79.0193),
        ("Michigan", "State", 44.3148, -85.6024),
    ],
    "FRA": [
        ("Île-de-France", "Région", 48.8499, 2.6370),
        ("Provence-Alpes-Côte d'Azur", "Région", 43.9352, 6.0679),
        ("Auvergne-Rhône-Alpes", "Région", 45.4473, 4.3852),
        ("Nouvelle-Aquitaine", "Région", 45.7087, 0.6261),
        ("Occitanie", "Région", 43.8927, 2.2827),
    ],
    "DEU": [
        ("Bavaria", "Bundesland", 48.7904, 11.4979),
        ("North Rhine-Westphalia", "Bundesland", 51.4332, 7.6616),
        ("Baden-Württemberg", "Bundesland", 48.6616, 9.3501),
        ("Lower Saxony", "Bundesland", 52.6367, 9.8451),
        ("Hesse", "Bundesland", 50.6521, 9.1624),
    ],
}

# name, lat, lng, ISO3, continent, feature type, population
PLACES = [
    # European capitals
    ("Paris", 48.8566, 2.3522, "FRA", "Europe", "capital", 2161000),
    ("Berlin", 52.5200, 13.4050, "DEU", "Europe", "capital", 3645000),
    ("Rome", 41.9028, 12.4964, "ITA", "Europe", "capital", 2873000),
    ("Madrid", 40.4168, -3.7038, "ESP", "Europe", "capital", 3223000),
    ("London", 51.5074, -0.1278, "GBR", "Europe", "capital", 8982000),
    ("Warsaw", 52.2297, 21.0122, "POL", "Europe", "capital", 1790000),
    ("Amsterdam", 52.3676, 4.9041, "NLD", "Europe", "capital", 872680),
    ("Brussels", 50.8503, 4.3517, "BEL", "Europe", "capital", 1209000),
    ("Stockholm", 59.3293, 18.0686, "SWE", "Europe", "capital", 975904),
    ("Lisbon", 38.7223, -9.1393, "PRT", "Europe", "capital", 504718),
    # European cities
    ("Barcelona", 41.3851, 2.1734, "ESP", "Europe", "city", 1620343),
    ("Milan", 45.4642, 9.1900, "ITA", "Europe", "city", 1352000),
    ("Munich", 48.1351, 11.5820, "DEU", "Europe", "city", 1472000),
    ("Lyon", 45.7640, 4.8357, "FRA", "Europe", "city", 513275),
    ("Marseille", 43.2965, 5.3698, "FRA", "Europe", "city", 861635),
    ("Hamburg", 53.5511, 9.9937, "DEU", "Europe", "city", 1841000),
    ("Naples", 40.8518, 14.2681, "ITA", "Europe", "city", 959470),
    ("Manchester", 53.4808, -2.2426, "GBR", "Europe", "city", 547627),
    ("Birmingham", 52.4862, -1.8904, "GBR", "Europe", "city", 1141816),
    ("Valencia", 39.4699, -0.3763, "ESP", "Europe", "city", 791413),
    # North American capitals and cities
    ("Washington, D.C.", 38.9072, -77.0369, "USA", "North America", "capital", 689545),
    ("Ottawa", 45.4215, -75.6972, "CAN", "North America", "capital", 994837),
    ("Mexico City", 19.4326, -99.1332, "MEX", "North America", "capital", 8918653),
    ("New York City", 40.7128, -74.0060, "USA", "North America", "city", 8336817),
    ("Los Angeles", 34.0522, -118.2437, "USA", "North America", "city", 3979576),
    ("Chicago", 41.8781, -87.6298, "USA", "North America", "city", 2693976),
    ("Houston", 29.7604, -95.3698, "USA", "North America", "city", 2320268),
    ("Toronto", 43.6532, -79.3832, "CAN", "North America", "city", 2731571),
    ("Vancouver", 49.2827, -123.1207, "CAN", "North America", "city", 631486),
    ("Montreal", 45.5017, -73.5673, "CAN", "North America", "city", 1762949),
    ("San Francisco", 37.7749, -122.4194, "USA", "North America", "city", 873965),
    ("Miami", 25.7617, -80.1918, "USA", "North America", "city", 467963),
    ("Philadelphia", 39.9526, -75.1652, "USA", "North America", "city", 1584064),
    ("Phoenix", 33.4484, -112.0740, "USA", "North America", "city", 1680992),
    ("Dallas", 32.7767, -96.7970, "USA", "North America", "city", 1343573),
    # Asian capitals and cities
    ("Tokyo", 35.6762, 139.6503, "JPN", "Asia", "capital", 13960000),
    ("Beijing", 39.9042, 116.4074, "CHN", "Asia", "capital", 21540000),
    ("New Delhi", 28.6139, 77.2090, "IND", "Asia", "capital", 16787941),
    ("Jakarta", -6.2088, 106.8456, "IDN", "Asia", "capital", 10562088),
    ("Seoul", 37.5665, 126.9780, "KOR", "Asia", "capital", 9776000),
    ("Shanghai", 31.2304, 121.4737, "CHN", "Asia", "city", 24280000),
    ("Mumbai", 19.0760, 72.8777, "IND", "Asia", "city", 12442373),
    ("Osaka", 34.6937, 135.5023, "JPN", "Asia", "city", 2691000),
    ("Bangalore", 12.9716, 77.5946, "IND", "Asia", "city", 8443675),
    ("Guangzhou", 23.1291, 113.2644, "CHN", "Asia", "city", 14904400),
    # South American capitals and cities
    ("Brasília", -15.7975, -47.8919, "BRA", "South America", "capital", 2977216),
    ("Buenos Aires", -34.6037, -58.3816, "ARG", "South America", "capital", 2891082),
    ("São Paulo", -23.5505, -46.6333, "BRA", "South America", "city", 12325232),
    ("Rio de Janeiro", -22.9068, -43.1729, "BRA", "South America", "city", 6747815),
    # African capitals and cities
    ("Pretoria", -25.7479, 28.2293, "ZAF", "Africa", "capital", 741651),
    ("Cairo", 30.0444, 31.2357, "EGY", "Africa", "capital", 9539673),
    ("Abuja", 9.0579, 7.4951, "NGA", "Africa", "capital", 3464123),
    ("Johannesburg", -26.2041, 28.0473, "ZAF", "Africa", "city", 5635127),
    ("Lagos", 6.5244, 3.3792, "NGA", "Africa", "city", 14862000),
    ("Alexandria", 31.2001, 29.9187, "EGY", "Africa", "city", 5200000),
    # Oceanian capitals and cities
    ("Canberra", -35.2809, 149.1300, "AUS", "Oceania", "capital", 453558),
    ("Wellington", -41.2866, 174.7756, "NZL", "Oceania", "capital", 212700),
    ("Sydney", -33.8688, 151.2093, "AUS", "Oceania", "city", 5312163),
    ("Melbourne", -37.8136, 144.9631, "AUS", "Oceania", "city", 5078193),
    ("Auckland", -36.8485, 174.7633, "NZL", "Oceania", "city", 1657200),
    ("Brisbane", -27.4698, 153.0251, "AUS", "Oceania", "city", 2514184),
    ("Perth", -31.9505, 115.8605, "AUS", "Oceania", "city", 2085973),
]

# US state -> (capital, lat, lng, population)
US_STATE_CAPITALS = {
    "California": ("Sacramento", 38.5816, -121.4944, 513624),
    "Texas": ("Austin", 30.2672, -97.7431, 978908),
    "New York": ("Albany", 42.6526, -73.7562, 99224),
    "Florida": ("Tallahassee", 30.4383, -84.2807, 196169),
    "Illinois": ("Springfield", 39.7817, -89.6501, 114230),
    "Pennsylvania": ("Harrisburg", 40.2732, -76.8867, 50099),
    "Ohio": ("Columbus", 39.9612, -82.9988, 905748),
    "Georgia": ("Atlanta", 33.7490, -84.3880, 498715),
    "North Carolina": ("Raleigh", 35.7796, -78.6382, 467665),
    "Michigan": ("Lansing", 42.7325, -84.5555, 118210),
}


def seed_all(session: Session) -> Dict[str, int]:
    """
    Load the demo dataset. Refuses to run when any area already exists.

    Returns how many countries, states and places were inserted.
    """
    if session.scalar(select(Area.id).limit(1)) is not None:
        raise StoreError("Database already has data. Clear it first if you want to reseed.")

    country_ids = {}
    state_ids = {}

    for name, code, continent, lat, lng in COUNTRIES:
        country = Area(
            name=name,
            slug=generate_scoped_slug(name, code, 0),
            admin_type_name="Country",
            admin_level=0,
            country_code=code,
            continent_name=continent,
            centroid_lat=lat,
            centroid_lng=lng,
        )
        session.add(country)
        session.flush()
        country_ids[code] = (country.id, continent)

    state_count = 0
    for code, states in STATES.items():
        if code not in country_ids:
            continue
        country_id, continent = country_ids[code]
        for name, admin_type, lat, lng in states:
            state = Area(
                name=name,
                slug=generate_scoped_slug(name, code, 1),
                admin_type_name=admin_type,
                admin_level=1,
                country_code=code,
                continent_name=continent,
                parent_id=country_id,
                centroid_lat=lat,
                centroid_lng=lng,
            )
            session.add(state)
            session.flush()
            state_ids[(code, name)] = state.id
            state_count += 1

    for name, lat, lng, code, continent, feature_type, population in PLACES:
        session.add(Place(
            name=name,
            latitude=lat,
            longitude=lng,
            country_code=code,
            continent_name=continent,
            feature_type=feature_type,
            population=population,
        ))

    for state_name, (name, lat, lng, population) in US_STATE_CAPITALS.items():
        session.add(Place(
            name=name,
            latitude=lat,
            longitude=lng,
            country_code="USA",
            continent_name="North America",
            feature_type="capital",
            population=population,
            adm1_id=state_ids.get(("USA", state_name)),
        ))

    session.commit()

    return {
        "countries": len(COUNTRIES),
        "states": state_count,
        "places": len(PLACES) + len(US_STATE_CAPITALS),
    }


def clear_imported(session: Session) -> Dict[str, int]:
    """Run clear_all_imported_data until the store is empty."""
    totals = {"deleted_places": 0, "deleted_areas": 0, "deleted_geometries": 0}
    while True:
        result = clear_all_imported_data(session)
        for key in totals:
            totals[key] += result[key]
        logger.info(
            f"  Deleted {result['deleted_places']} places, {result['deleted_areas']} areas, "
            f"{result['deleted_geometries']} geometries"
        )
        if result["done"]:
            return totals


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed or clear the GeoQuiz store")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--clear", action="store_true", help="Delete all places, areas and geometries")
    group.add_argument("--clear-imported", action="store_true", help="Delete imported data in batches")
    args = parser.parse_args(argv)

    try:
        with session_scope(get_database_url()) as session:
            if args.clear:
                result = clear_all(session)
            elif args.clear_imported:
                result = clear_imported(session)
            else:
                result = seed_all(session)
    except (GeoQuizError, SQLAlchemyError) as e:
        logger.error(f"{e}")
        return 1

    logger.info(f"Done: {result}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
