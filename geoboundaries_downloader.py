"""
============================================
PURPOSE: Fetch geoBoundaries administrative boundaries (ADM0-ADM2)
         and turn each feature into an area record for the quiz store
INPUT: geoBoundaries API (gbOpen release), on-disk download cache
OUTPUT: AreaImportData records (slug, centroid, simplified GeoJSON, ids)
============================================

Used by import_areas.py. Downloads are cached as
{ISO}-{ADMn}-{boundaryID}[_simplified].geojson so re-runs don't hit the
server again.

License: downloaded data follows CC-BY 4.0 (gbOpen)
"""

import json
import logging
import math
import re
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import geopandas as gpd
import requests
from shapely.errors import ShapelyError
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from config import (
    CACHE_DIR,
    REQUEST_DELAY,
    REQUEST_TIMEOUT,
    RETRY_DELAY,
    SIMPLIFY_TOLERANCE,
    get_admin_type_name,
    resolve_continent,
)
from geo_utils import (
    calculate_centroid,
    generate_scoped_slug,
    simplify_geometry,
    validate_and_fix_geometry,
)

logger = logging.getLogger(__name__)

# ============================================
# CONFIGURATION
# ============================================

API_BASE = "https://www.geoboundaries.org/api/current"

# Release type: 'gbOpen' (CC-BY 4.0), 'gbHumanitarian' (UN OCHA), 'gbAuthoritative' (UN SALB)
RELEASE_TYPE = "gbOpen"

# One download plus a single retry
MAX_RETRIES = 2

# Feature properties worth keeping in the stored GeoJSON
KEPT_PROPERTIES = ("shapeName", "shapeISO", "shapeID", "shapeGroup", "shapeType")

ISO3_RE = re.compile(r"^[A-Z]{3}$")
BOUNDARY_TYPE_RE = re.compile(r"^ADM[0-2]$")


@dataclass
class AreaImportData:
    """An area ready to be upserted, before its parent id is known."""
    name: str
    slug: str
    admin_type_name: str
    admin_level: int
    country_code: str
    continent_name: str
    centroid_lat: float
    centroid_lng: float
    geoboundaries_id: str
    parent_geoboundaries_id: Optional[str] = None
    geojson: Optional[str] = None
    # Guaranteed-interior point, used to find the parent spatially
    anchor_lat: Optional[float] = None
    anchor_lon: Optional[float] = None

    def to_record(self, parent_id: Optional[int] = None, include_geojson: bool = True) -> Dict[str, Any]:
        record = asdict(self)
        for key in ("parent_geoboundaries_id", "anchor_lat", "anchor_lon"):
            record.pop(key)
        record["parent_id"] = parent_id
        if not include_geojson:
            record["geojson"] = None
        return record


# ============================================
# API ACCESS
# ============================================

def fetch_boundary_metadata(iso_code: str, adm_level: str) -> Optional[List[Dict[str, Any]]]:
    """
    Fetch boundary metadata for one country (or "ALL") at one level.

    The API answers with a single object or a list; both come back as a list.
    Returns None when there is no data (404) or the request fails.
    """
    url = f"{API_BASE}/{RELEASE_TYPE}/{iso_code}/{adm_level}"
    logger.info(f"Fetching metadata for {iso_code} {adm_level}...")

    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT)
        if response.status_code == 404:
            logger.info(f"  No data available for {iso_code} {adm_level}")
            return None
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Error fetching metadata for {iso_code} {adm_level}: {e}")
        return None
    except ValueError as e:
        logger.error(f"Invalid metadata response for {iso_code} {adm_level}: {e}")
        return None

    if not data:
        return None

    entries = data if isinstance(data, list) else [data]
    logger.info(f"  Found {len(entries)} boundary entries")
    return entries


def get_cache_path(metadata: Dict[str, Any], simplified: bool, cache_dir: Path = CACHE_DIR) -> Path:
    suffix = "_simplified" if simplified else ""
    filename = (
        f"{metadata.get('boundaryISO', 'UNK')}-{metadata.get('boundaryType', 'UNK')}-"
        f"{metadata.get('boundaryID', 'unknown')}{suffix}.geojson"
    )
    return Path(cache_dir) / filename


def download_geojson(metadata: Dict[str, Any], cache_dir: Path = CACHE_DIR) -> Optional[Dict[str, Any]]:
    """
    Download the boundary GeoJSON, preferring the pre-simplified file.

    Reads from the cache when present; otherwise downloads (one retry) and
    writes the cache. Returns None if the download fails.
    """
    use_simplified = bool(metadata.get("simplifiedGeometryGeoJSON"))
    url = metadata.get("simplifiedGeometryGeoJSON") or metadata.get("gjDownloadURL")
    if not url:
        logger.warning(f"No download URL for {metadata.get('boundaryISO')} {metadata.get('boundaryType')}")
        return None

    cache_path = get_cache_path(metadata, use_simplified, cache_dir)

    if cache_path.exists():
        try:
            with open(cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            logger.info(f"  Using cached: {cache_path}")
            return data
        except ValueError as e:
            logger.warning(f"  Corrupt cache file {cache_path}, downloading again: {e}")

    for attempt in range(MAX_RETRIES):
        try:
            logger.info(f"  Downloading{' (simplified)' if use_simplified else ''}: {url}")
            response = requests.get(url, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            data = response.json()

            cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(cache_path, "w", encoding="utf-8") as f:
                json.dump(data, f)

            return data

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Download attempt {attempt + 1}/{MAX_RETRIES} failed: {e}")
            if attempt < MAX_RETRIES - 1:
                time.sleep(RETRY_DELAY)
            else:
                logger.error(f"✗ Failed to download: {url}")

    return None


# ============================================
# FEATURE PROCESSING
# ============================================

def load_features(geojson: Dict[str, Any]) -> gpd.GeoDataFrame:
    """Load a FeatureCollection into a GeoDataFrame with repaired geometries."""
    features = geojson.get("features") or []
    if not features:
        return gpd.GeoDataFrame(geometry=[], crs="EPSG:4326")
    gdf = gpd.GeoDataFrame.from_features(features, crs="EPSG:4326")
    return validate_and_fix_geometry(gdf)


def _clean_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key in KEPT_PROPERTIES:
        value = properties.get(key)
        if isinstance(value, float) and math.isnan(value):
            continue
        if value is not None:
            cleaned[key] = value
    return cleaned


def _prop(properties: Dict[str, Any], key: str) -> Optional[str]:
    value = properties.get(key)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    value = str(value).strip()
    return value or None


def process_boundary_feature(
    properties: Dict[str, Any],
    geometry: Optional[BaseGeometry],
    metadata: Dict[str, Any],
    parent_country_code: Optional[str] = None,
    tolerance: float = SIMPLIFY_TOLERANCE,
) -> Optional[AreaImportData]:
    """Turn one boundary feature into an AreaImportData record."""
    if geometry is None or geometry.is_empty:
        return None

    country_code = _prop(metadata, "boundaryISO")
    boundary_type = _prop(metadata, "boundaryType")
    if not country_code or not ISO3_RE.match(country_code.upper()):
        logger.warning(f"  Skipping feature {properties.get('shapeName')}: bad boundaryISO {country_code!r}")
        return None
    if not boundary_type or not BOUNDARY_TYPE_RE.match(boundary_type):
        logger.warning(f"  Skipping feature {properties.get('shapeName')}: bad boundaryType {boundary_type!r}")
        return None

    country_code = country_code.upper()
    admin_level = int(boundary_type[3:])

    name = (
        _prop(properties, "shapeName")
        or _prop(properties, "shapeGroup")
        or metadata.get("boundaryName")
        or "Unknown"
    )

    continent_name = resolve_continent(country_code, metadata.get("Continent"))
    if not continent_name:
        logger.warning(f"  Unknown continent for country: {country_code}")
        continent_name = "Unknown"

    centroid_lat, centroid_lng = calculate_centroid(geometry)
    anchor = geometry.representative_point()

    feature = {
        "type": "Feature",
        "properties": _clean_properties(properties),
        "geometry": mapping(geometry),
    }
    simplified, _ = simplify_geometry(feature, tolerance)

    # ADM1 ids use shapeName so ADM2 shapeGroup values can point at them
    boundary_id = metadata.get("boundaryID")
    if admin_level == 0:
        geoboundaries_id = country_code
    elif admin_level == 1:
        feature_id = _prop(properties, "shapeName") or _prop(properties, "shapeID") or boundary_id
        geoboundaries_id = f"{country_code}-ADM1-{feature_id}"
    else:
        feature_id = _prop(properties, "shapeID") or _prop(properties, "shapeName") or boundary_id
        geoboundaries_id = f"{country_code}-ADM{admin_level}-{feature_id}"

    if admin_level == 1:
        parent_geoboundaries_id = parent_country_code or country_code
    elif admin_level == 2:
        parent_geoboundaries_id = f"{country_code}-ADM1-{_prop(properties, 'shapeGroup') or 'unknown'}"
    else:
        parent_geoboundaries_id = None

    return AreaImportData(
        name=name,
        slug=generate_scoped_slug(name, country_code, admin_level),
        admin_type_name=get_admin_type_name(country_code, admin_level),
        admin_level=admin_level,
        country_code=country_code,
        continent_name=continent_name,
        centroid_lat=centroid_lat,
        centroid_lng=centroid_lng,
        geoboundaries_id=geoboundaries_id,
        parent_geoboundaries_id=parent_geoboundaries_id,
        geojson=json.dumps(simplified),
        anchor_lat=anchor.y,
        anchor_lon=anchor.x,
    )


def process_boundary(
    metadata: Dict[str, Any],
    parent_country_code: Optional[str] = None,
    cache_dir: Path = CACHE_DIR,
    tolerance: float = SIMPLIFY_TOLERANCE,
) -> List[AreaImportData]:
    """Download one boundary file and process every feature in it."""
    geojson = download_geojson(metadata, cache_dir)
    if not geojson or not geojson.get("features"):
        return []

    gdf = load_features(geojson)
    results = []

    for _, row in gdf.iterrows():
        properties = row.drop(labels="geometry").to_dict()
        try:
            area = process_boundary_feature(properties, row.geometry, metadata, parent_country_code, tolerance)
        except (ValueError, KeyError, TypeError, AttributeError, ShapelyError) as e:
            logger.warning(f"  Skipping feature {properties.get('shapeName')} ({metadata.get('boundaryISO')}): {e}")
            continue
        if area:
            results.append(area)

    return results


# ============================================
# PER-LEVEL FETCHERS
# ============================================

def fetch_all_countries(cache_dir: Path = CACHE_DIR, tolerance: float = SIMPLIFY_TOLERANCE) -> List[AreaImportData]:
    """Fetch and process every ADM0 boundary."""
    logger.info("=== Fetching ADM0 (Countries) ===")

    metadata_list = fetch_boundary_metadata("ALL", "ADM0")
    if not metadata_list:
        logger.error("No ADM0 metadata found")
        return []

    results = []
    for metadata in metadata_list:
        time.sleep(REQUEST_DELAY)
        for area in process_boundary(metadata, cache_dir=cache_dir, tolerance=tolerance):
            results.append(area)
            logger.info(f"  Processed: {area.name} ({area.country_code})")

    logger.info(f"Total countries processed: {len(results)}")
    return results


def fetch_level_for_countries(
    country_codes: List[str],
    adm_level: str,
    cache_dir: Path = CACHE_DIR,
    tolerance: float = SIMPLIFY_TOLERANCE,
) -> List[AreaImportData]:
    """Fetch and process one admin level for each listed country."""
    results = []

    for country_code in country_codes:
        time.sleep(REQUEST_DELAY)

        metadata_list = fetch_boundary_metadata(country_code, adm_level)
        if not metadata_list:
            continue

        for metadata in metadata_list:
            areas = process_boundary(metadata, country_code, cache_dir, tolerance)
            results.extend(areas)
            logger.info(f"  {country_code}: processed {len(areas)} {adm_level} areas")

    logger.info(f"Total {adm_level} areas processed: {len(results)}")
    return results


def fetch_adm1_for_countries(country_codes: List[str], cache_dir: Path = CACHE_DIR,
                             tolerance: float = SIMPLIFY_TOLERANCE) -> List[AreaImportData]:
    logger.info("=== Fetching ADM1 (States/Provinces) ===")
    logger.info(f"Countries: {', '.join(country_codes)}")
    return fetch_level_for_countries(country_codes, "ADM1", cache_dir, tolerance)


def fetch_adm2_for_countries(country_codes: List[str], cache_dir: Path = CACHE_DIR,
                             tolerance: float = SIMPLIFY_TOLERANCE) -> List[AreaImportData]:
    logger.info("=== Fetching ADM2 (Counties/Districts) ===")
    logger.info(f"Countries: {', '.join(country_codes)}")
    return fetch_level_for_countries(country_codes, "ADM2", cache_dir, tolerance)
