from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger(__name__)

# ISO code -> destination country name
COUNTRY_NAMES = {
    "AE": "United Arab Emirates",
    "AR": "Argentina",
    "AT": "Austria",
    "AU": "Australia",
    "BE": "Belgium",
    "BR": "Brazil",
    "CA": "Canada",
    "CH": "Switzerland",
    "CI": "Ivory Coast",
    "CL": "Chile",
    "CN": "China",
    "CO": "Colombia",
    "CZ": "Czech Republic",
    "DE": "Germany",
    "DK": "Denmark",
    "DZ": "Algeria",
    "EG": "Egypt",
    "ES": "Spain",
    "FI": "Finland",
    "FR": "France",
    "GB": "United Kingdom",
    "GH": "Ghana",
    "GR": "Greece",
    "HK": "Hong Kong",
    "HU": "Hungary",
    "ID": "Indonesia",
    "IE": "Ireland",
    "IL": "Israel",
    "IN": "India",
    "IQ": "Iraq",
    "IR": "Iran",
    "IT": "Italy",
    "JP": "Japan",
    "KE": "Kenya",
    "KR": "South Korea",
    "LT": "Lithuania",
    "LY": "Libya",
    "MA": "Morocco",
    "MX": "Mexico",
    "MY": "Malaysia",
    "NG": "Nigeria",
    "NL": "Netherlands",
    "NO": "Norway",
    "NZ": "New Zealand",
    "PH": "Philippines",
    "PL": "Poland",
    "PR": "Puerto Rico",
    "PT": "Portugal",
    "RO": "Romania",
    "RU": "Russia",
    "SA": "Saudi Arabia",
    "SE": "Sweden",
    "SG": "Singapore",
    "SY": "Syria",
    "TH": "Thailand",
    "TN": "Tunisia",
    "TR": "Turkey",
    "TW": "Taiwan",
    "UA": "Ukraine",
    "US": "United States",
    "VE": "Venezuela",
    "VG": "Virgin Islands, British",
    "VI": "Virgin Islands, U.S.",
    "VN": "Vietnam",
    "ZA": "South Africa",
}

COUNTRY_ALIASES = {
    "united states of america": "US",
    "usa": "US",
    "uk": "GB",
    "great britain": "GB",
    "korea, republic of": "KR",
    "people's republic of china": "CN",
    "uae": "AE",
    "russian federation": "RU",
}

DEFAULT_POSTCODES = {
    "US": "00000", "CA": "A0A 0A0", "GB": "SW1A 1AA", "AU": "0000", "DE": "00000",
    "FR": "00000", "IT": "00000", "ES": "00000", "NL": "0000 AA", "BE": "0000",
    "CH": "0000", "AT": "0000", "SE": "000 00", "NO": "0000", "DK": "0000",
    "FI": "00000", "JP": "000-0000", "KR": "00000", "CN": "000000", "IN": "000000",
    "BR": "00000-000", "MX": "00000", "RU": "000000", "ZA": "0000", "PL": "00-000",
    "CZ": "000 00", "HU": "0000", "PT": "0000-000", "GR": "000 00", "TR": "00000",
    "IL": "0000000", "AE": "00000", "SA": "00000", "EG": "00000", "NG": "000000",
    "KE": "00000", "GH": "GA-000-0000", "MA": "00000", "TN": "0000", "DZ": "00000",
    "LY": "00000",
}

STATE_REQUIRED = {"US", "CA", "AU", "MX", "BR", "IN", "JP", "IT", "ES", "AR", "MY"}
POSTCODE_OPTIONAL = {"AE", "HK", "IE", "GH", "NG", "SA", "VG"}

US_STATES = {
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL", "GA", "HI", "ID", "IL",
    "IN", "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO", "MT", "NE",
    "NV", "NH", "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC", "SD",
    "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY", "PR", "AA", "AE", "AP",
}

# (first three zip digits low, high, state)
_US_ZIP_RANGES = (
    (100, 149, "NY"),
    (200, 299, "DC"),
    (300, 399, "GA"),
    (600, 699, "IL"),
    (700, 799, "TX"),
    (800, 899, "CO"),
    (900, 999, "CA"),
)

_STATE_IN_ZIP = re.compile(r"^([A-Z]{2})\s+(.+)$")


def country_name(code: str) -> Optional[str]:
    return COUNTRY_NAMES.get((code or "").strip().upper())


def country_code(country: str) -> str:
    """Best-effort ISO code for a country code or name; unknown names pass through."""
    value = (country or "").strip()
    if len(value) == 2:
        return value.upper()
    lowered = value.lower()
    for code, name in COUNTRY_NAMES.items():
        if name.lower() == lowered:
            return code
    return COUNTRY_ALIASES.get(lowered, value)


def default_postcode(code: str) -> str:
    return DEFAULT_POSTCODES.get(code, "00000")


def guess_us_state_from_zip(zip_code: str) -> Optional[str]:
    if not re.match(r"^\d{5}", zip_code or ""):
        return None
    prefix = int(zip_code[:3])
    for low, high, state in _US_ZIP_RANGES:
        if low <= prefix <= high:
            return state
    return None


@dataclass(frozen=True)
class CleanLocation:
    state: str
    zip: str


def clean_state_and_zip(state: str, zip_code: str, code: str) -> CleanLocation:
    """Repair the state/postcode pair the destination will validate."""
    state = (state or "").strip()
    zip_code = (zip_code or "").strip()

    # "NY 10001" typed into the zip field
    if not state and zip_code and code == "US":
        m = _STATE_IN_ZIP.match(zip_code)
        if m and m.group(1) in US_STATES:
            state, zip_code = m.group(1), m.group(2).strip()

    if not zip_code and code not in POSTCODE_OPTIONAL:
        zip_code = default_postcode(code)
        log.info("Using default postal code %s for %s", zip_code, code)

    if not state and code in STATE_REQUIRED:
        if code == "US":
            state = guess_us_state_from_zip(zip_code) or ""
        if not state:
            state = "N/A"

    return CleanLocation(state=state, zip=zip_code)
