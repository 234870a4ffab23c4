"""
Geometry and text helpers shared by the import pipelines.

- WKT point parsing for Wikidata coordinates
- Scoped slug generation
- Centroid (center of mass) calculation
- Size-bounded polygon simplification
- Point-in-polygon matching against stored areas
"""

import json
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import geopandas as gpd
from shapely.errors import ShapelyError
from shapely.geometry import Point, mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import make_valid
from slugify import slugify

logger = logging.getLogger(__name__)

# Room is left for the other fields of the stored document
MAX_GEOMETRY_SIZE = 900 * 1024

MAX_SIMPLIFY_ATTEMPTS = 50

# Attempts below this use topology-preserving simplification
HIGH_QUALITY_ATTEMPTS = 10

POLYGONAL_TYPES = ("Polygon", "MultiPolygon")

_NUMBER = r"[-+]?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?"
WKT_POINT_RE = re.compile(rf"^Point\(({_NUMBER}) ({_NUMBER})\)$", re.IGNORECASE)

# Applied before transliteration: "&" reads as a word, apostrophes and dots
# join their neighbours instead of splitting them
SLUG_REPLACEMENTS = [
    ["&", " and "],
    ["'", ""],
    ["\u2019", ""],
    [".", ""],
]


# ============================================
# COORDINATES
# ============================================

def parse_wkt_point(text: Optional[str]) -> Optional[Tuple[float, float]]:
    """
    Parse a Wikidata WKT literal of the form "Point(lon lat)".

    Returns (lat, lon), or None for malformed or out-of-range input.
    """
    if not text:
        return None

    match = WKT_POINT_RE.match(text)
    if not match:
        return None

    lon = float(match.group(1))
    lat = float(match.group(2))

    # Exponents can still overflow to inf
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None

    if lat < -90 or lat > 90 or lon < -180 or lon > 180:
        logger.warning(f"Invalid coordinates: lat={lat}, lon={lon}")
        return None

    return lat, lon


# ============================================
# SLUGS
# ============================================

def generate_slug(name: str) -> str:
    """URL-safe slug: transliterated to ASCII letters, digits and single hyphens, lowercase."""
    return slugify(name, lowercase=True, replacements=SLUG_REPLACEMENTS)


def generate_scoped_slug(name: str, country_code: str, admin_level: int) -> str:
    """
    Slug scoped by country so equal names in different countries don't collide.

    Countries use their lowercase ISO code; lower levels use "iso-name".
    Slugs are not unique within a country and level.
    """
    if admin_level == 0:
        return country_code.lower()
    return f"{country_code.lower()}-{generate_slug(name)}"


# ============================================
# GEOMETRY
# ============================================

def to_shape(obj: Union[str, Dict[str, Any], BaseGeometry]) -> BaseGeometry:
    """Build a shapely geometry from a Feature, a bare geometry, or its JSON text."""
    if isinstance(obj, BaseGeometry):
        return obj
    if isinstance(obj, str):
        obj = json.loads(obj)
    if obj.get("type") == "Feature":
        obj = obj["geometry"]
    return shape(obj)


def polygonal_part(geom: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    """Keep only the polygon pieces of a geometry (make_valid may add lines/points)."""
    if geom is None or geom.is_empty:
        return None
    if geom.geom_type in POLYGONAL_TYPES:
        return geom
    parts = [g for g in getattr(geom, "geoms", []) if g.geom_type in POLYGONAL_TYPES]
    if not parts:
        return None
    return unary_union(parts)


def validate_and_fix_geometry(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Validate and fix invalid geometries, dropping rows with nothing polygonal left."""
    fixed_geometries = []
    for geom in gdf.geometry:
        if geom is None:
            fixed_geometries.append(None)
        elif not geom.is_valid:
            try:
                fixed_geometries.append(polygonal_part(make_valid(geom)))
            except ShapelyError as e:
                logger.warning(f"Could not fix geometry: {e}")
                fixed_geometries.append(geom)
        else:
            fixed_geometries.append(geom)

    gdf = gdf.copy()
    gdf["geometry"] = fixed_geometries
    return gdf[gdf.geometry.notna()]


def calculate_centroid(geometry: Union[Dict[str, Any], BaseGeometry]) -> Tuple[float, float]:
    """Area-weighted center of mass as (lat, lng)."""
    centroid = to_shape(geometry).centroid
    return centroid.y, centroid.x


def feature_size(feature: Dict[str, Any]) -> int:
    return len(json.dumps(feature))


def _escalation_factor(attempt: int) -> int:
    if attempt < 5:
        return 2
    if attempt < 10:
        return 3
    if attempt < 20:
        return 5
    return 10


def _simplify_once(geom: BaseGeometry, tolerance: float, high_quality: bool) -> BaseGeometry:
    simplified = geom.simplify(tolerance, preserve_topology=high_quality)
    if not high_quality and (simplified.is_empty or simplified.geom_type not in POLYGONAL_TYPES):
        # Plain Douglas-Peucker can collapse small rings entirely
        simplified = geom.simplify(tolerance, preserve_topology=True)
    return simplified


def simplify_geometry(
    feature: Dict[str, Any],
    initial_tolerance: float = 0.01,
) -> Tuple[Dict[str, Any], float]:
    """
    Simplify a polygon Feature until its JSON fits in MAX_GEOMETRY_SIZE.

    Each attempt simplifies the original geometry with a growing tolerance.
    The first attempts preserve topology; later ones switch to plain
    Douglas-Peucker for speed. Always returns a geometry, even when the cap
    of MAX_SIMPLIFY_ATTEMPTS is reached without fitting.

    Returns (simplified_feature, tolerance_used).
    """
    geom = to_shape(feature)
    properties = feature.get("properties") or {}
    tolerance = initial_tolerance
    simplified = feature
    used = tolerance

    for attempt in range(MAX_SIMPLIFY_ATTEMPTS):
        result = _simplify_once(geom, tolerance, attempt < HIGH_QUALITY_ATTEMPTS)
        simplified = {
            "type": "Feature",
            "properties": properties,
            "geometry": mapping(result),
        }
        used = tolerance
        size = feature_size(simplified)

        if size <= MAX_GEOMETRY_SIZE:
            if tolerance > 1:
                logger.warning(f"  Used aggressive simplification (tolerance: {tolerance:.3f})")
            return simplified, used

        tolerance *= _escalation_factor(attempt)

    logger.warning(
        f"  Geometry still large after max simplification "
        f"({feature_size(simplified) / 1024:.0f}KB), using most simplified version "
        f"(tolerance: {used:.0f})"
    )
    return simplified, used


# ============================================
# POINT IN POLYGON
# ============================================

def find_containing_area(
    lat: float,
    lon: float,
    areas: Sequence[Dict[str, Any]],
    country_code: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Return the first area whose geometry covers (lat, lon), or None.

    Areas are dicts with "id", "country_code" and "geojson" (JSON text of a
    Feature or geometry, or None). Points on a boundary count as inside.
    Overlapping candidates resolve to whichever comes first.
    """
    if country_code:
        candidates = [a for a in areas if a.get("country_code") == country_code]
    else:
        candidates = areas

    pt = Point(lon, lat)

    for area in candidates:
        if not area.get("geojson"):
            continue

        try:
            polygon = to_shape(area["geojson"])
            if polygon.covers(pt):
                return area
        except (ValueError, KeyError, TypeError, AttributeError, ShapelyError) as e:
            logger.warning(f"Invalid GeoJSON for area {area.get('id')}: {e}")

    return None


def batch(items: Iterable[Any], size: int) -> List[List[Any]]:
    """Split items into chunks of at most `size`."""
    items = list(items)
    return [items[i:i + size] for i in range(0, len(items), size)]
