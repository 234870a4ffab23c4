"""
Wikidata SPARQL client for the place import.

Fetches cities/towns above a population threshold plus all capitals, and
validates each result binding into a PlaceImportData record. Bindings with
missing or malformed fields are skipped with a warning.
"""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

import requests

from config import CONTINENTS, COUNTRY_TO_CONTINENT, REQUEST_TIMEOUT, normalize_continent_name
from geo_utils import parse_wkt_point

logger = logging.getLogger(__name__)

WIKIDATA_SPARQL = "https://query.wikidata.org/sparql"
USER_AGENT = "GeoQuiz-Import/1.0 (https://geoquiz.ai)"

CAPITAL_QID = "Q5119"

# city, town
CITY_TYPES = ["wd:Q515", "wd:Q3957"]
# capital, big city
CAPITAL_TYPES = ["wd:Q5119", "wd:Q1549591"]

ISO3_RE = re.compile(r"^[A-Z]{3}$")

_SELECT = """
    SELECT DISTINCT
      ?item ?itemLabel
      ?coords ?population
      ?countryCode
      ?continent ?continentLabel
      ?type
      ?image
      ?article
"""

_OPTIONALS = """
      OPTIONAL {
        ?item wdt:P17 ?country .
        ?country wdt:P298 ?countryCode .
        OPTIONAL { ?country wdt:P30 ?continent . }
      }
      OPTIONAL { ?item wdt:P18 ?image . }
      OPTIONAL {
        ?article schema:about ?item ;
                 schema:isPartOf <https://en.wikipedia.org/> ;
                 schema:inLanguage "en" .
      }

      SERVICE wikibase:label {
        bd:serviceParam wikibase:language "en".
        ?item rdfs:label ?itemLabel .
        ?continent rdfs:label ?continentLabel .
      }
"""


@dataclass
class PlaceImportData:
    name: str
    latitude: float
    longitude: float
    continent_name: str
    country_code: str
    feature_type: str
    wikidata_id: str
    population: Optional[int] = None
    image_url: Optional[str] = None
    wikipedia_url: Optional[str] = None

    def to_record(self, adm1_id: Optional[int] = None, adm2_id: Optional[int] = None) -> Dict[str, Any]:
        record = asdict(self)
        record["adm1_id"] = adm1_id
        record["adm2_id"] = adm2_id
        return record


def build_cities_query(population_threshold: int, include_capitals: bool) -> str:
    types = CITY_TYPES + (CAPITAL_TYPES if include_capitals else [])
    return f"""{_SELECT}
    WHERE {{
      VALUES ?type {{ {' '.join(types)} }}
      ?item wdt:P31 ?type .
      ?item wdt:P1082 ?population .
      ?item wdt:P625 ?coords .

      FILTER (?population >= {int(population_threshold)})
{_OPTIONALS}
    }}
    ORDER BY DESC(?population)
"""


def build_capitals_query() -> str:
    return f"""{_SELECT}
    WHERE {{
      BIND(wd:{CAPITAL_QID} AS ?type)
      ?item wdt:P31 wd:{CAPITAL_QID} .
      ?item wdt:P625 ?coords .

      OPTIONAL {{ ?item wdt:P1082 ?population . }}
{_OPTIONALS}
    }}
"""


def commons_url(filename: str) -> str:
    return f"https://commons.wikimedia.org/wiki/Special:FilePath/{quote(filename.replace(' ', '_'))}"


def wikipedia_url(title: str) -> str:
    return f"https://en.wikipedia.org/wiki/{quote(title.replace(' ', '_'))}"


def _value(binding: Dict[str, Any], key: str) -> Optional[str]:
    cell = binding.get(key)
    if not cell:
        return None
    return cell.get("value") or None


def _last_segment(uri: Optional[str]) -> Optional[str]:
    if not uri:
        return None
    return uri.rstrip("/").split("/")[-1] or None


def _parse_population(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(float(raw))
    except ValueError:
        return None


def parse_place_binding(binding: Dict[str, Any], feature_type: Optional[str] = None) -> Optional[PlaceImportData]:
    """
    Validate one SPARQL result row into a PlaceImportData.

    feature_type forces the tag; otherwise it comes from ?type
    (capital for Q5119, city for everything else).
    """
    qid = _last_segment(_value(binding, "item"))
    if not qid:
        return None

    coords = parse_wkt_point(_value(binding, "coords"))
    if not coords:
        logger.warning(f"  Skipping {qid}: invalid coordinates")
        return None

    country_code = (_value(binding, "countryCode") or "").strip().upper()
    if not country_code:
        logger.warning(f"  Skipping {qid}: no country code")
        return None
    if not ISO3_RE.match(country_code):
        logger.warning(f"  Skipping {qid}: malformed country code {country_code}")
        return None

    continent_name = (
        normalize_continent_name(_value(binding, "continentLabel"))
        or COUNTRY_TO_CONTINENT.get(country_code)
    )
    if not continent_name or continent_name not in CONTINENTS:
        logger.warning(f"  Skipping {qid}: unknown continent for {country_code}")
        return None

    name = _value(binding, "itemLabel")
    # The label service falls back to the QID when there is no English label
    if not name or name == qid:
        logger.warning(f"  Skipping {qid}: no name")
        return None

    if feature_type is None:
        type_qid = _last_segment(_value(binding, "type"))
        feature_type = "capital" if type_qid == CAPITAL_QID else "city"

    image_file = _last_segment(_value(binding, "image"))
    article_title = _last_segment(_value(binding, "article"))

    lat, lon = coords
    return PlaceImportData(
        name=name,
        latitude=lat,
        longitude=lon,
        continent_name=continent_name,
        country_code=country_code,
        feature_type=feature_type,
        wikidata_id=qid,
        population=_parse_population(_value(binding, "population")),
        image_url=commons_url(unquote(image_file)) if image_file else None,
        wikipedia_url=wikipedia_url(unquote(article_title)) if article_title else None,
    )


def run_sparql(query: str, timeout: int = REQUEST_TIMEOUT) -> List[Dict[str, Any]]:
    """Run a SPARQL query and return its bindings. Request errors propagate."""
    response = requests.get(
        WIKIDATA_SPARQL,
        params={"query": query, "format": "json"},
        headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        timeout=timeout,
    )
    response.raise_for_status()
    return response.json()["results"]["bindings"]


def parse_bindings(bindings: List[Dict[str, Any]], feature_type: Optional[str] = None) -> List[PlaceImportData]:
    """Parse bindings, keeping the first row seen for each QID."""
    results = []
    seen = set()

    for binding in bindings:
        qid = _last_segment(_value(binding, "item"))
        if not qid or qid in seen:
            continue
        seen.add(qid)

        place = parse_place_binding(binding, feature_type)
        if place:
            results.append(place)

    return results


def fetch_places(population_threshold: int, include_capitals: bool = True) -> List[PlaceImportData]:
    """Fetch cities and towns (and capitals/big cities) above the threshold."""
    logger.info("=== Fetching Places from Wikidata ===")
    logger.info(f"Population threshold: {population_threshold}")

    try:
        bindings = run_sparql(build_cities_query(population_threshold, include_capitals))
    except (requests.exceptions.RequestException, ValueError, KeyError) as e:
        logger.error(f"Error fetching from Wikidata: {e}")
        raise

    logger.info(f"Received {len(bindings)} results from Wikidata")
    results = parse_bindings(bindings)

    capitals = sum(1 for p in results if p.feature_type == "capital")
    logger.info(f"Processed {len(results)} unique places")
    logger.info(f"  Capitals: {capitals}")
    logger.info(f"  Cities: {len(results) - capitals}")
    return results


def fetch_capitals() -> List[PlaceImportData]:
    """Fetch every capital regardless of population."""
    logger.info("=== Fetching Capitals from Wikidata ===")

    try:
        bindings = run_sparql(build_capitals_query(), timeout=max(REQUEST_TIMEOUT // 2, 30))
    except (requests.exceptions.RequestException, ValueError, KeyError) as e:
        logger.error(f"Error fetching capitals from Wikidata: {e}")
        raise

    logger.info(f"Received {len(bindings)} capital results")
    results = parse_bindings(bindings, feature_type="capital")
    logger.info(f"Processed {len(results)} unique capitals")
    return results


def merge_capitals(places: List[PlaceImportData], capitals: List[PlaceImportData]) -> List[PlaceImportData]:
    """
    Merge capitals into places by wikidata_id.

    A capital replaces an existing record unless that record is already a
    capital. Order of first appearance is kept.
    """
    merged: Dict[str, PlaceImportData] = {p.wikidata_id: p for p in places}

    for capital in capitals:
        existing = merged.get(capital.wikidata_id)
        if existing is None or existing.feature_type != "capital":
            merged[capital.wikidata_id] = capital

    return list(merged.values())
