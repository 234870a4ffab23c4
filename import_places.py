#!/usr/bin/env python3
"""
============================================
PURPOSE: Import cities and capitals from Wikidata into the GeoQuiz store
INPUT: Wikidata SPARQL endpoint, DATABASE_URL, previously imported areas
OUTPUT: places table, each place linked to its ADM1/ADM2 where one contains it
RUN IN: Terminal
============================================

Usage:
    python import_places.py
    python import_places.py --min-population 500000 --no-capitals

Run import_areas.py first so places can be matched to their state/county.
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import (
    ADM2_COUNTRIES,
    AUTO_DETECT_CAPITALS,
    BATCH_SIZE,
    POPULATION_THRESHOLD,
    get_database_url,
)
from database import session_scope
from errors import GeoQuizError, StoreError
from geo_utils import batch, find_containing_area
from mutations import upsert_place
from queries import get_areas_for_spatial_match
from wikidata_client import PlaceImportData, fetch_capitals, fetch_places, merge_capitals

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@dataclass
class PlaceImportState:
    """Areas loaded for spatial matching, keyed by (country_code, admin_level)."""
    area_cache: Dict[Tuple[str, int], List[Dict[str, Any]]] = field(default_factory=dict)
    adm2_countries: List[str] = field(default_factory=lambda: list(ADM2_COUNTRIES))
    failed: int = 0


def load_areas_for_country(
    session: Session,
    state: PlaceImportState,
    country_code: str,
    admin_level: int,
) -> List[Dict[str, Any]]:
    """Areas of a country at a level, loaded once per run."""
    key = (country_code, admin_level)
    if key in state.area_cache:
        return state.area_cache[key]

    try:
        areas = get_areas_for_spatial_match(session, country_code, admin_level)
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Could not load ADM{admin_level} areas for {country_code}: {e}")
        areas = []

    state.area_cache[key] = areas
    return areas


def find_area_ids(session: Session, state: PlaceImportState, place: PlaceImportData) -> Tuple[Optional[int], Optional[int]]:
    """(adm1_id, adm2_id) of the areas containing a place; ADM2 only for ADM2 countries."""
    adm1_id = None
    adm2_id = None

    adm1_areas = load_areas_for_country(session, state, place.country_code, 1)
    if adm1_areas:
        match = find_containing_area(place.latitude, place.longitude, adm1_areas, place.country_code)
        if match:
            adm1_id = match["id"]

    if place.country_code in state.adm2_countries:
        adm2_areas = load_areas_for_country(session, state, place.country_code, 2)
        if adm2_areas:
            match = find_containing_area(place.latitude, place.longitude, adm2_areas, place.country_code)
            if match:
                adm2_id = match["id"]

    return adm1_id, adm2_id


def import_place_batch(session: Session, state: PlaceImportState, places: List[PlaceImportData]) -> int:
    imported = 0

    for place in places:
        try:
            adm1_id, adm2_id = find_area_ids(session, state, place)
            upsert_place(session, place.to_record(adm1_id, adm2_id))
            imported += 1
        except (StoreError, SQLAlchemyError) as e:
            session.rollback()
            logger.error(f"Error importing place {place.name}: {e}")
            state.failed += 1

    return imported


def collect_places(population_threshold: int, include_capitals: bool) -> List[PlaceImportData]:
    """Places above the threshold, merged with all capitals when include_capitals is set."""
    places = fetch_places(population_threshold, include_capitals)
    if not include_capitals:
        return places

    capitals = fetch_capitals()
    merged = merge_capitals(places, capitals)
    logger.info(f"Merged places: {len(merged)} unique places")
    return merged


def run_import(
    session: Session,
    state: Optional[PlaceImportState] = None,
    population_threshold: int = POPULATION_THRESHOLD,
    include_capitals: bool = AUTO_DETECT_CAPITALS,
    batch_size: int = BATCH_SIZE,
) -> Dict[str, int]:
    """Fetch, match and store places. Wikidata errors propagate."""
    state = state or PlaceImportState()
    places = collect_places(population_threshold, include_capitals)

    logger.info(f"Importing {len(places)} places...")

    batches = batch(places, batch_size)
    total = 0
    for i, chunk in enumerate(batches, 1):
        logger.info(f"  Batch {i}/{len(batches)} ({len(chunk)} places)")
        imported = import_place_batch(session, state, chunk)
        total += imported
        logger.info(f"    Imported: {imported}, Total: {total} ({i / len(batches) * 100:.1f}%)")

    capitals = sum(1 for p in places if p.feature_type == "capital")
    return {
        "imported": total,
        "failed": state.failed,
        "capitals": capitals,
        "cities": len(places) - capitals,
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import Wikidata places into the GeoQuiz store")
    parser.add_argument("--min-population", type=int, default=POPULATION_THRESHOLD,
                        help=f"Population threshold for cities (default: {POPULATION_THRESHOLD})")
    parser.add_argument("--no-capitals", action="store_true",
                        help="Skip the separate capitals query")
    args = parser.parse_args(argv)

    include_capitals = AUTO_DETECT_CAPITALS and not args.no_capitals

    logger.info("=" * 60)
    logger.info("GeoQuiz Places Import")
    logger.info("=" * 60)
    logger.info(f"Population threshold: {args.min_population:,}")
    logger.info(f"Auto-detect capitals: {include_capitals}")

    start_time = time.time()

    try:
        database_url = get_database_url()
        with session_scope(database_url) as session:
            summary = run_import(session, population_threshold=args.min_population,
                                 include_capitals=include_capitals)
    except (GeoQuizError, SQLAlchemyError, requests.exceptions.RequestException, ValueError, KeyError) as e:
        logger.error(f"Import failed: {e}")
        return 1

    logger.info("=" * 60)
    logger.info("Import Complete!")
    logger.info("=" * 60)
    logger.info(f"Total places imported: {summary['imported']}")
    logger.info(f"  Capitals: {summary['capitals']}")
    logger.info(f"  Cities: {summary['cities']}")
    if summary["failed"]:
        logger.warning(f"  Failed: {summary['failed']}")
    logger.info(f"Time elapsed: {time.time() - start_time:.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
