"""
GeoQuiz configuration.

Settings come from the environment (optionally loaded from .env.local / .env).
The static lookup tables (continents, country -> continent, local names for
administrative levels) live here too so the import scripts and the API agree.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

load_dotenv(".env.local")
load_dotenv()


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip().upper() for item in raw.split(",") if item.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ============================================
# CONFIGURATION - OVERRIDE VIA ENVIRONMENT
# ============================================

# Countries that get ADM1 (states/provinces) imported
ADM1_COUNTRIES = _env_list("ADM1_COUNTRIES", [
    "USA", "CAN", "MEX", "BRA", "ARG", "FRA", "DEU", "ITA", "ESP", "GBR",
    "POL", "CHN", "IND", "IDN", "JPN", "AUS", "NGA", "ZAF",
])

# Countries that also get ADM2 (counties/districts) imported
ADM2_COUNTRIES = _env_list("ADM2_COUNTRIES", ["USA"])

# Minimum population for cities pulled from Wikidata
POPULATION_THRESHOLD = _env_int("POPULATION_THRESHOLD", 100_000)

# Also query capitals separately (they may be small or lack population)
AUTO_DETECT_CAPITALS = _env_bool("AUTO_DETECT_CAPITALS", True)

# Records per progress batch
BATCH_SIZE = _env_int("BATCH_SIZE", 50)

# Delay between external requests in seconds (be nice to the servers)
REQUEST_DELAY = _env_float("REQUEST_DELAY", 0.5)

# Timeout for external HTTP calls in seconds
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 120)

# Wait before the single download retry
RETRY_DELAY = _env_float("RETRY_DELAY", 5)

# Starting tolerance (degrees) for geometry simplification
SIMPLIFY_TOLERANCE = _env_float("SIMPLIFY_TOLERANCE", 0.01)

# Where downloaded geoBoundaries GeoJSON is cached
CACHE_DIR = Path(os.getenv("GEOQUIZ_CACHE_DIR", "./.cache/geoboundaries"))


def get_database_url(required: bool = True) -> Optional[str]:
    """Return DATABASE_URL; import scripts cannot run without it."""
    url = os.getenv("DATABASE_URL")
    if not url and required:
        raise ConfigurationError(
            "DATABASE_URL environment variable is required "
            "(set it in .env.local or export it before running)"
        )
    return url


# ============================================
# STATIC LOOKUP TABLES
# ============================================

CONTINENTS = [
    "Africa",
    "Asia",
    "Europe",
    "North America",
    "Oceania",
    "South America",
]

_CONTINENT_COUNTRIES = {
    "Africa": [
        "DZA", "AGO", "BEN", "BWA", "BFA", "BDI", "CPV", "CMR", "CAF", "TCD",
        "COM", "COG", "CIV", "COD", "DJI", "EGY", "GNQ", "ERI", "SWZ", "ETH",
        "GAB", "GMB", "GHA", "GIN", "GNB", "KEN", "LSO", "LBR", "LBY", "MDG",
        "MWI", "MLI", "MRT", "MUS", "MYT", "MAR", "MOZ", "NAM", "NER", "NGA",
        "RWA", "REU", "SHN", "STP", "SEN", "SYC", "SLE", "SOM", "ZAF", "SSD",
        "SDN", "TGO", "TUN", "UGA", "TZA", "ZMB", "ZWE", "ESH",
    ],
    "Asia": [
        "AFG", "ARM", "AZE", "BHR", "BGD", "BTN", "BRN", "KHM", "CHN", "CYP",
        "PRK", "GEO", "IND", "IDN", "IRN", "IRQ", "ISR", "JPN", "JOR", "KAZ",
        "KWT", "KGZ", "LAO", "LBN", "MYS", "MDV", "MNG", "MMR", "NPL", "OMN",
        "PAK", "PSE", "PHL", "QAT", "KOR", "SAU", "SGP", "LKA", "SYR", "TWN",
        "TJK", "THA", "TLS", "TUR", "TKM", "ARE", "UZB", "VNM", "YEM", "HKG",
        "MAC",
    ],
    "Europe": [
        "ALB", "AND", "AUT", "BLR", "BEL", "BIH", "BGR", "HRV", "CZE", "DNK",
        "EST", "FIN", "FRA", "DEU", "GIB", "GRC", "HUN", "ISL", "IRL", "ITA",
        "XKX", "LVA", "LIE", "LTU", "LUX", "MLT", "MDA", "MCO", "MNE", "NLD",
        "MKD", "NOR", "POL", "PRT", "ROU", "RUS", "SMR", "SRB", "SVK", "SVN",
        "ESP", "SWE", "CHE", "UKR", "GBR", "VAT", "FRO", "IMN", "JEY", "GGY",
        "ALA", "SJM",
    ],
    "North America": [
        "USA", "CAN", "MEX", "GRL", "BMU", "SPM", "AIA", "ATG", "ABW", "BHS",
        "BRB", "BLZ", "BES", "VGB", "CYM", "CRI", "CUB", "CUW", "DMA", "DOM",
        "SLV", "GRD", "GLP", "GTM", "HTI", "HND", "JAM", "MTQ", "MSR", "NIC",
        "PAN", "PRI", "BLM", "KNA", "LCA", "VCT", "TTO", "TCA", "VIR", "MAF",
        "SXM",
    ],
    "Oceania": [
        "ASM", "AUS", "COK", "FJI", "PYF", "GUM", "KIR", "MHL", "FSM", "NRU",
        "NCL", "NZL", "NIU", "MNP", "PLW", "PNG", "PCN", "WSM", "SLB", "TKL",
        "TON", "TUV", "VUT", "WLF", "NFK",
    ],
    "South America": [
        "ARG", "BOL", "BRA", "CHL", "COL", "ECU", "FLK", "GUF", "GUY", "PRY",
        "PER", "SUR", "URY", "VEN",
    ],
    "Antarctica": ["ATA"],
}

COUNTRY_TO_CONTINENT: Dict[str, str] = {
    iso: continent
    for continent, isos in _CONTINENT_COUNTRIES.items()
    for iso in isos
}

# Upstream continent labels (Wikidata, geoBoundaries) -> our continent names
CONTINENT_ALIASES = {
    "africa": "Africa",
    "asia": "Asia",
    "europe": "Europe",
    "north america": "North America",
    "northern america": "North America",
    "central america": "North America",
    "caribbean": "North America",
    "americas": "North America",
    "south america": "South America",
    "oceania": "Oceania",
    "australia": "Oceania",
    "insular oceania": "Oceania",
    "antarctica": "Antarctica",
}


def normalize_continent_name(label: Optional[str]) -> Optional[str]:
    """Map an upstream continent label to one of ours, or None if unknown."""
    if not label:
        return None
    label = label.strip().lower()
    for key, continent in CONTINENT_ALIASES.items():
        if key in label:
            return continent
    return None


def resolve_continent(country_code: str, label: Optional[str] = None) -> Optional[str]:
    """Continent for a country: the fixed table first, then the upstream label."""
    return COUNTRY_TO_CONTINENT.get(country_code) or normalize_continent_name(label)


# Generic names per admin level when a country has no local term
ADMIN_TYPE_NAMES = {
    0: "Country",
    1: "State/Province",
    2: "County/District",
}

# Territories are level-0 areas that are not sovereign countries
TERRITORIES = [
    "MYT", "REU", "SHN", "PSE", "GIB", "AIA", "BES", "VGB", "CYM", "FLK",
    "GUF", "GLP", "MTQ", "MSR", "PRI", "BLM", "TCA", "VIR", "BMU", "GRL",
    "SPM", "ASM", "COK", "PYF", "GUM", "NCL", "NIU", "MNP", "PCN", "TKL",
    "WLF",
]

# Local names for ADM1 / ADM2 per country
ADMIN_TERMINOLOGY = {
    # Africa
    "DZA": {1: "Province", 2: "District"},
    "AGO": {1: "Province", 2: "Municipality"},
    "BEN": {1: "Department", 2: "Commune"},
    "BWA": {1: "District", 2: "Subdistrict"},
    "BFA": {1: "Region", 2: "Province"},
    "CMR": {1: "Region", 2: "Department"},
    "CAF": {1: "Prefecture", 2: "Subprefecture"},
    "COD": {1: "Province", 2: "Territory"},
    "CIV": {1: "District", 2: "Region"},
    "EGY": {1: "Governorate", 2: "District"},
    "ETH": {1: "Region", 2: "Zone"},
    "GHA": {1: "Region", 2: "District"},
    "KEN": {1: "County", 2: "Subcounty"},
    "MDG": {1: "Region", 2: "District"},
    "MAR": {1: "Region", 2: "Province"},
    "MOZ": {1: "Province", 2: "District"},
    "NGA": {1: "State", 2: "Local Government Area"},
    "RWA": {1: "Province", 2: "District"},
    "SEN": {1: "Region", 2: "Department"},
    "SOM": {1: "Federal Member State", 2: "Region"},
    "ZAF": {1: "Province", 2: "District Municipality"},
    "SSD": {1: "State", 2: "County"},
    "SDN": {1: "State", 2: "Locality"},
    "TUN": {1: "Governorate", 2: "Delegation"},
    "UGA": {1: "Region", 2: "District"},
    "TZA": {1: "Region", 2: "District"},
    "ZMB": {1: "Province", 2: "District"},
    "ZWE": {1: "Province", 2: "District"},
    # Asia
    "AFG": {1: "Province", 2: "District"},
    "BGD": {1: "Division", 2: "District"},
    "KHM": {1: "Province", 2: "District"},
    "CHN": {1: "Province", 2: "Prefecture"},
    "IND": {1: "State", 2: "District"},
    "IDN": {1: "Province", 2: "Regency"},
    "IRN": {1: "Province", 2: "County"},
    "IRQ": {1: "Governorate", 2: "District"},
    "JPN": {1: "Prefecture", 2: "Municipality"},
    "KAZ": {1: "Region", 2: "District"},
    "MYS": {1: "State", 2: "District"},
    "MNG": {1: "Province", 2: "District"},
    "MMR": {1: "Region", 2: "District"},
    "NPL": {1: "Province", 2: "District"},
    "PAK": {1: "Province", 2: "District"},
    "PHL": {1: "Region", 2: "Province"},
    "KOR": {1: "Province", 2: "District"},
    "SAU": {1: "Region", 2: "Governorate"},
    "LKA": {1: "Province", 2: "District"},
    "THA": {1: "Province", 2: "District"},
    "TUR": {1: "Province", 2: "District"},
    "ARE": {1: "Emirate"},
    "UZB": {1: "Region", 2: "District"},
    "VNM": {1: "Province", 2: "District"},
    # Europe
    "AUT": {1: "State", 2: "District"},
    "BEL": {1: "Region", 2: "Province"},
    "CHE": {1: "Canton", 2: "District"},
    "CZE": {1: "Region", 2: "District"},
    "DEU": {1: "State", 2: "District"},
    "DNK": {1: "Region", 2: "Municipality"},
    "ESP": {1: "Autonomous Community", 2: "Province"},
    "FIN": {1: "Region", 2: "Municipality"},
    "FRA": {1: "Region", 2: "Department"},
    "GBR": {1: "Country", 2: "Region"},
    "GRC": {1: "Administrative Region", 2: "Regional Unit"},
    "HUN": {1: "County", 2: "District"},
    "IRL": {1: "Province", 2: "County"},
    "ITA": {1: "Region", 2: "Province"},
    "NLD": {1: "Province", 2: "Municipality"},
    "NOR": {1: "County", 2: "Municipality"},
    "POL": {1: "Voivodeship", 2: "County"},
    "PRT": {1: "Region", 2: "District"},
    "ROU": {1: "County", 2: "Municipality"},
    "RUS": {1: "Federal Subject", 2: "District"},
    "SWE": {1: "County", 2: "Municipality"},
    "UKR": {1: "Oblast", 2: "Raion"},
    # North America
    "USA": {1: "State", 2: "County"},
    "CAN": {1: "Province", 2: "Census Division"},
    "MEX": {1: "State", 2: "Municipality"},
    "CUB": {1: "Province", 2: "Municipality"},
    "GTM": {1: "Department", 2: "Municipality"},
    "HND": {1: "Department", 2: "Municipality"},
    "JAM": {1: "Parish", 2: "Constituency"},
    "PAN": {1: "Province", 2: "District"},
    # South America
    "ARG": {1: "Province", 2: "Department"},
    "BOL": {1: "Department", 2: "Province"},
    "BRA": {1: "State", 2: "Municipality"},
    "CHL": {1: "Region", 2: "Province"},
    "COL": {1: "Department", 2: "Municipality"},
    "ECU": {1: "Province", 2: "Canton"},
    "PER": {1: "Region", 2: "Province"},
    "PRY": {1: "Department", 2: "District"},
    "URY": {1: "Department", 2: "Municipality"},
    "VEN": {1: "State", 2: "Municipality"},
    # Oceania
    "AUS": {1: "State", 2: "Local Government Area"},
    "NZL": {1: "Region", 2: "Territorial Authority"},
    "PNG": {1: "Province", 2: "District"},
    "FJI": {1: "Division", 2: "Province"},
}


def get_admin_type_name(country_code: str, admin_level: int) -> str:
    """Local term for an admin level, falling back to the generic name."""
    if admin_level == 0:
        return "Territory" if country_code in TERRITORIES else ADMIN_TYPE_NAMES[0]
    local = ADMIN_TERMINOLOGY.get(country_code, {}).get(admin_level)
    if local:
        return local
    return ADMIN_TYPE_NAMES.get(admin_level, "Region")
