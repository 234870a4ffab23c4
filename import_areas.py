#!/usr/bin/env python3
"""
============================================
PURPOSE: Import geoBoundaries areas into the GeoQuiz store
         ADM0 (countries) -> ADM1 (states/provinces) -> ADM2 (counties/districts)
INPUT: geoBoundaries API, DATABASE_URL
OUTPUT: areas + geometries tables, each area linked to its parent
RUN IN: Terminal
============================================

Usage:
    python import_areas.py
    python import_areas.py --adm1 USA,FRA --adm2 USA

Each level is fully written before the next starts so children can look up
their parent's id. An ADM2 whose shapeGroup doesn't name a known ADM1 is
placed by testing its interior point against the country's ADM1 polygons.
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import (
    ADM1_COUNTRIES,
    ADM2_COUNTRIES,
    BATCH_SIZE,
    CACHE_DIR,
    SIMPLIFY_TOLERANCE,
    get_database_url,
)
from database import session_scope
from errors import GeoQuizError, PayloadTooLargeError, StoreError
from geo_utils import batch, find_containing_area
from geoboundaries_downloader import (
    AreaImportData,
    fetch_adm1_for_countries,
    fetch_adm2_for_countries,
    fetch_all_countries,
)
from mutations import upsert_area
from queries import get_area_by_geoboundaries_id, get_areas_for_spatial_match

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@dataclass
class BoundaryImportState:
    """Per-run bookkeeping: geoboundaries_id -> stored id, plus ADM1 polygons per country."""
    id_mapping: Dict[str, int] = field(default_factory=dict)
    adm1_areas: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    skipped: int = 0


def _adm1_candidates(session: Session, state: BoundaryImportState, country_code: str) -> List[Dict[str, Any]]:
    if country_code not in state.adm1_areas:
        state.adm1_areas[country_code] = get_areas_for_spatial_match(session, country_code, 1)
    return state.adm1_areas[country_code]


def resolve_parent_id(session: Session, state: BoundaryImportState, area: AreaImportData) -> Optional[int]:
    """
    Stored id of an area's parent, or None.

    Tries this run's id mapping, then the store, then (ADM2 only) a
    point-in-polygon match of the area's interior point against ADM1 areas.
    """
    if area.admin_level == 0 or not area.parent_geoboundaries_id:
        return None

    parent_id = state.id_mapping.get(area.parent_geoboundaries_id)
    if parent_id is not None:
        return parent_id

    parent = get_area_by_geoboundaries_id(session, area.parent_geoboundaries_id)
    if parent is not None:
        state.id_mapping[area.parent_geoboundaries_id] = parent.id
        return parent.id

    if area.admin_level == 2 and area.anchor_lat is not None:
        candidates = _adm1_candidates(session, state, area.country_code)
        match = find_containing_area(area.anchor_lat, area.anchor_lon, candidates, area.country_code)
        if match:
            return match["id"]

    logger.warning(f"  No parent found for {area.name} ({area.geoboundaries_id})")
    return None


def _upsert_with_fallback(session: Session, area: AreaImportData, parent_id: Optional[int]) -> int:
    try:
        return upsert_area(session, area.to_record(parent_id))
    except PayloadTooLargeError as e:
        session.rollback()
        logger.warning(f"  {area.name}: geometry too large, importing without polygon ({e})")
        return upsert_area(session, area.to_record(parent_id, include_geojson=False))


def import_area_batch(session: Session, state: BoundaryImportState, areas: List[AreaImportData]) -> int:
    """
    Upsert a batch of areas and record their ids. Returns how many were stored.

    A geometry the store rejects as too large is dropped and the area is
    stored without it. Other failures, including the parent lookup, skip
    the area.
    """
    imported = 0

    for area in areas:
        try:
            parent_id = resolve_parent_id(session, state, area)
            area_id = _upsert_with_fallback(session, area, parent_id)
        except (StoreError, SQLAlchemyError) as e:
            session.rollback()
            logger.error(f"Error importing area {area.name}: {e}")
            state.skipped += 1
            continue

        state.id_mapping[area.geoboundaries_id] = area_id
        imported += 1

    return imported


def import_stage(
    session: Session,
    state: BoundaryImportState,
    label: str,
    areas: List[AreaImportData],
    batch_size: int = BATCH_SIZE,
) -> int:
    logger.info(f"Importing {len(areas)} {label}...")

    batches = batch(areas, batch_size)
    total = 0
    for i, chunk in enumerate(batches, 1):
        logger.info(f"  Batch {i}/{len(batches)} ({len(chunk)} areas)")
        total += import_area_batch(session, state, chunk)

    logger.info(f"Imported {total} {label}")
    return total


def run_import(
    session: Session,
    state: Optional[BoundaryImportState] = None,
    adm1_countries: Optional[List[str]] = None,
    adm2_countries: Optional[List[str]] = None,
    batch_size: int = BATCH_SIZE,
    cache_dir: Path = CACHE_DIR,
    tolerance: float = SIMPLIFY_TOLERANCE,
) -> Dict[str, int]:
    """Run the three import stages in order and return counts per level."""
    state = state or BoundaryImportState()
    adm1_countries = ADM1_COUNTRIES if adm1_countries is None else adm1_countries
    adm2_countries = ADM2_COUNTRIES if adm2_countries is None else adm2_countries

    countries = fetch_all_countries(cache_dir=cache_dir, tolerance=tolerance)
    adm0_count = import_stage(session, state, "countries", countries, batch_size)

    adm1_areas = fetch_adm1_for_countries(adm1_countries, cache_dir=cache_dir, tolerance=tolerance)
    adm1_count = import_stage(session, state, "ADM1 areas", adm1_areas, batch_size)

    adm2_count = 0
    if adm2_countries:
        adm2_areas = fetch_adm2_for_countries(adm2_countries, cache_dir=cache_dir, tolerance=tolerance)
        adm2_count = import_stage(session, state, "ADM2 areas", adm2_areas, batch_size)

    return {
        "countries": adm0_count,
        "adm1": adm1_count,
        "adm2": adm2_count,
        "skipped": state.skipped,
        "total": adm0_count + adm1_count + adm2_count,
    }


def _country_list(raw: str) -> List[str]:
    return [code.strip().upper() for code in raw.split(",") if code.strip()]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import geoBoundaries areas into the GeoQuiz store")
    parser.add_argument("--adm1", type=_country_list, default=None,
                        help="Comma-separated ISO3 codes for ADM1 import (default: ADM1_COUNTRIES)")
    parser.add_argument("--adm2", type=_country_list, default=None,
                        help="Comma-separated ISO3 codes for ADM2 import (default: ADM2_COUNTRIES)")
    args = parser.parse_args(argv)

    logger.info("=" * 60)
    logger.info("GeoQuiz Areas Import")
    logger.info("=" * 60)

    start_time = time.time()

    try:
        database_url = get_database_url()
        adm1 = args.adm1 if args.adm1 is not None else ADM1_COUNTRIES
        adm2 = args.adm2 if args.adm2 is not None else ADM2_COUNTRIES
        logger.info(f"ADM1 countries: {', '.join(adm1)}")
        logger.info(f"ADM2 countries: {', '.join(adm2)}")

        with session_scope(database_url) as session:
            summary = run_import(session, adm1_countries=adm1, adm2_countries=adm2)
    except (GeoQuizError, SQLAlchemyError) as e:
        logger.error(f"Import failed: {e}")
        return 1

    logger.info("=" * 60)
    logger.info("Import Complete!")
    logger.info("=" * 60)
    logger.info(f"Total areas imported: {summary['total']}")
    logger.info(f"  Countries (ADM0): {summary['countries']}")
    logger.info(f"  States/Provinces (ADM1): {summary['adm1']}")
    if adm2:
        logger.info(f"  Counties/Districts (ADM2): {summary['adm2']}")
    if summary["skipped"]:
        logger.warning(f"  Skipped: {summary['skipped']}")
    logger.info(f"Time elapsed: {time.time() - start_time:.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
