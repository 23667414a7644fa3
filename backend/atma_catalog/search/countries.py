"""
Country lookup: ISO 3166-1 alpha-2 code -> (display name, continent slug).
A subset of current country codes, covering the destinations the catalog lists.
"""

from typing import Dict, FrozenSet, Optional, Tuple

AFRICA = "africa"
ASIA = "asia"
EUROPE = "europe"
NORTH_AMERICA = "north_america"
SOUTH_AMERICA = "south_america"
OCEANIA = "oceania"

CONTINENTS: FrozenSet[str] = frozenset(
    {AFRICA, ASIA, EUROPE, NORTH_AMERICA, SOUTH_AMERICA, OCEANIA}
)

COUNTRIES: Dict[str, Tuple[str, str]] = {
    # Africa
    "EG": ("Egypt", AFRICA),
    "GH": ("Ghana", AFRICA),
    "KE": ("Kenya", AFRICA),
    "MA": ("Morocco", AFRICA),
    "MU": ("Mauritius", AFRICA),
    "NA": ("Namibia", AFRICA),
    "RW": ("Rwanda", AFRICA),
    "SC": ("Seychelles", AFRICA),
    "TZ": ("Tanzania", AFRICA),
    "ZA": ("South Africa", AFRICA),
    # Asia
    "AE": ("United Arab Emirates", ASIA),
    "CN": ("China", ASIA),
    "ID": ("Indonesia", ASIA),
    "IL": ("Israel", ASIA),
    "IN": ("India", ASIA),
    "JO": ("Jordan", ASIA),
    "JP": ("Japan", ASIA),
    "KH": ("Cambodia", ASIA),
    "KR": ("South Korea", ASIA),
    "LK": ("Sri Lanka", ASIA),
    "MV": ("Maldives", ASIA),
    "MY": ("Malaysia", ASIA),
    "NP": ("Nepal", ASIA),
    "OM": ("Oman", ASIA),
    "PH": ("Philippines", ASIA),
    "SG": ("Singapore", ASIA),
    "TH": ("Thailand", ASIA),
    "TR": ("Turkey", ASIA),
    "VN": ("Vietnam", ASIA),
    # Europe
    "AT": ("Austria", EUROPE),
    "BE": ("Belgium", EUROPE),
    "CH": ("Switzerland", EUROPE),
    "CZ": ("Czechia", EUROPE),
    "DE": ("Germany", EUROPE),
    "DK": ("Denmark", EUROPE),
    "ES": ("Spain", EUROPE),
    "FI": ("Finland", EUROPE),
    "FR": ("France", EUROPE),
    "GB": ("United Kingdom", EUROPE),
    "GR": ("Greece", EUROPE),
    "HR": ("Croatia", EUROPE),
    "HU": ("Hungary", EUROPE),
    "IE": ("Ireland", EUROPE),
    "IS": ("Iceland", EUROPE),
    "IT": ("Italy", EUROPE),
    "MT": ("Malta", EUROPE),
    "NL": ("Netherlands", EUROPE),
    "NO": ("Norway", EUROPE),
    "PL": ("Poland", EUROPE),
    "PT": ("Portugal", EUROPE),
    "SE": ("Sweden", EUROPE),
    "SI": ("Slovenia", EUROPE),
    # North America
    "BS": ("Bahamas", NORTH_AMERICA),
    "BZ": ("Belize", NORTH_AMERICA),
    "CA": ("Canada", NORTH_AMERICA),
    "CR": ("Costa Rica", NORTH_AMERICA),
    "DO": ("Dominican Republic", NORTH_AMERICA),
    "GT": ("Guatemala", NORTH_AMERICA),
    "JM": ("Jamaica", NORTH_AMERICA),
    "MX": ("Mexico", NORTH_AMERICA),
    "PA": ("Panama", NORTH_AMERICA),
    "PR": ("Puerto Rico", NORTH_AMERICA),
    "US": ("United States", NORTH_AMERICA),
    # South America
    "AR": ("Argentina", SOUTH_AMERICA),
    "BR": ("Brazil", SOUTH_AMERICA),
    "CL": ("Chile", SOUTH_AMERICA),
    "CO": ("Colombia", SOUTH_AMERICA),
    "EC": ("Ecuador", SOUTH_AMERICA),
    "PE": ("Peru", SOUTH_AMERICA),
    "UY": ("Uruguay", SOUTH_AMERICA),
    # Oceania
    "AU": ("Australia", OCEANIA),
    "FJ": ("Fiji", OCEANIA),
    "NZ": ("New Zealand", OCEANIA),
    "PF": ("French Polynesia", OCEANIA),
}


def country_name(code: Optional[str]) -> Optional[str]:
    """Human-readable name for an ISO code. Unknown codes are returned as given."""
    if not code:
        return None
    entry = COUNTRIES.get(code.strip().upper())
    return entry[0] if entry else code.strip()


def country_codes_for(continents) -> FrozenSet[str]:
    """All known country codes on any of the given continents."""
    return frozenset(
        code for code, (_, continent) in COUNTRIES.items() if continent in continents
    )
