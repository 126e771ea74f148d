# src/hl7_fhir_datatypes/convert/v2_to_fhir/address.py
"""
V2 AD / XAD and free-text addresses -> FHIR Address.

Structured values map positionally. Free text is split into parts (lines,
else comma-separated pieces) and each part is classified against USPS-style
term lists: street suffixes, directionals, unit designators, country names
and North American states and provinces.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from fhir.resources.address import Address

from ...lookup import LookupService
from ...models import build
from ...values import Composite, Primitive, V2Value, adjust, adjust_at, text_of
from ..base import FhirType
from ..registry import register

LOG = logging.getLogger(__name__)


def _terms(*words: str) -> FrozenSet[str]:
    return frozenset(w.upper() for w in words)


# ------------------------------------------------------------------------------
# term lists
# ------------------------------------------------------------------------------

COUNTRIES = _terms(
    "US", "U.S.", "U.S.A.", "USA", "United States", "United States of America",
    "CN", "Canada", "MX", "Mexico", "BZ", "Belize", "CR", "Costa Rica",
    "CZ", "Canal Zone", "SV", "El Salvador", "GT", "Guatemala", "HN",
    "Honduras", "NI", "Nicaragua", "PA", "Panama",
)

STATES = _terms(
    # US states and territories
    "AL", "Alabama", "AK", "Alaska", "AZ", "Arizona", "AR", "Arkansas", "AS",
    "American Samoa", "CA", "California", "CO", "Colorado", "CT",
    "Connecticut", "DE", "Delaware", "DC", "District of Columbia", "FL",
    "Florida", "GA", "Georgia", "GU", "Guam", "HI", "Hawaii", "ID", "Idaho",
    "IL", "Illinois", "IN", "Indiana", "IA", "Iowa", "KS", "Kansas", "KY",
    "Kentucky", "LA", "Louisiana", "ME", "Maine", "MD", "Maryland", "MA",
    "Massachusetts", "MI", "Michigan", "MN", "Minnesota", "MS", "Mississippi",
    "MO", "Missouri", "MT", "Montana", "NE", "Nebraska", "NV", "Nevada", "NH",
    "New Hampshire", "NJ", "New Jersey", "NM", "New Mexico", "NY", "New York",
    "NC", "North Carolina", "ND", "North Dakota", "MP",
    "Northern Mariana Islands", "OH", "Ohio", "OK", "Oklahoma", "OR",
    "Oregon", "PA", "Pennsylvania", "PR", "Puerto Rico", "RI", "Rhode Island",
    "SC", "South Carolina", "SD", "South Dakota", "TN", "Tennessee", "TX",
    "Texas", "TT", "Trust Territories", "UT", "Utah", "VT", "Vermont", "VA",
    "Virginia", "VI", "Virgin Islands", "WA", "Washington", "WV",
    "West Virginia", "WI", "Wisconsin", "WY", "Wyoming",
    # Canadian provinces and territories
    "Newfoundland and Labrador", "Newfoundland", "Labrador", "NL",
    "Prince Edward Island", "PE", "Nova Scotia", "NS", "New Brunswick", "NB",
    "Quebec", "QC", "Ontario", "ON", "Manitoba", "MB", "Saskatchewan", "SK",
    "Alberta", "AB", "British Columbia", "BC", "Yukon", "YT",
    "Northwest Territories", "NT", "Nunavut", "NU",
    # Mexican states
    "AG", "Aguascalientes", "BN", "Baja California Norte", "BS",
    "Baja California Sur", "CH", "Coahuila", "CI", "Chihuahua", "CL",
    "Colima", "CP", "Campeche", "CS", "Chiapas", "DF", "Districto Federal",
    "DG", "Durango", "GE", "Guerrero", "GJ", "Guanajuato", "HD", "Hidalgo",
    "JA", "Jalisco", "MC", "Michoacan", "MR", "Morelos", "MX", "Mexico", "NA",
    "Nayarit", "Nuevo Leon", "OA", "Oaxaca", "PU", "Puebla", "QE",
    "Queretaro", "QI", "Quintana Roo", "SI", "Sinaloa", "SL",
    "San Luis Potosi", "SO", "Sonora", "TA", "Tamaulipas", "TB", "Tabasco",
    "TL", "Tlaxcala", "VC", "Veracruz", "YU", "Yucatan", "ZA", "Zacateca",
)

# USPS Publication 28, appendix C1
STREET_SUFFIXES = _terms(
    "ALLEE", "ALLEY", "ALLY", "ALY", "ANEX", "ANNEX", "ANNX", "ANX", "ARC",
    "ARCADE", "AV", "AVE", "AVEN", "AVENU", "AVENUE", "AVN", "AVNUE",
    "BAYOO", "BAYOU", "BCH", "BEACH", "BEND", "BG", "BGS", "BLF", "BLFS",
    "BLUF", "BLUFF", "BLUFFS", "BLVD", "BND", "BOT", "BOTTM", "BOTTOM",
    "BOUL", "BOULEVARD", "BOULV", "BR", "BRANCH", "BRDGE", "BRG", "BRIDGE",
    "BRK", "BRKS", "BRNCH", "BROOK", "BROOKS", "BTM", "BURG", "BURGS", "BYP",
    "BYPA", "BYPAS", "BYPASS", "BYPS", "BYU", "CAMP", "CANYN", "CANYON",
    "CAPE", "CAUSEWAY", "CAUSWA", "CEN", "CENT", "CENTER", "CENTERS",
    "CENTR", "CENTRE", "CIR", "CIRC", "CIRCL", "CIRCLE", "CIRCLES", "CIRS",
    "CLB", "CLF", "CLFS", "CLIFF", "CLIFFS", "CLUB", "CMN", "CMNS", "CMP",
    "CNTER", "CNTR", "CNYN", "COMMON", "COMMONS", "COR", "CORNER", "CORNERS",
    "CORS", "COURSE", "COURT", "COURTS", "COVE", "COVES", "CP", "CPE",
    "CRCL", "CRCLE", "CREEK", "CRES", "CRESCENT", "CREST", "CRK",
    "CROSSING", "CROSSROAD", "CROSSROADS", "CRSE", "CRSENT", "CRSNT",
    "CRSSNG", "CRST", "CSWY", "CT", "CTR", "CTRS", "CTS", "CURV", "CURVE",
    "CV", "CVS", "CYN", "DALE", "DAM", "DIV", "DIVIDE", "DL", "DM", "DR",
    "DRIV", "DRIVE", "DRIVES", "DRS", "DRV", "DV", "DVD", "EST", "ESTATE",
    "ESTATES", "ESTS", "EXP", "EXPR", "EXPRESS", "EXPRESSWAY", "EXPW",
    "EXPY", "EXT", "EXTENSION", "EXTENSIONS", "EXTN", "EXTNSN", "EXTS",
    "FALL", "FALLS", "FERRY", "FIELD", "FIELDS", "FLAT", "FLATS", "FLD",
    "FLDS", "FLS", "FLT", "FLTS", "FORD", "FORDS", "FOREST", "FORESTS",
    "FORG", "FORGE", "FORGES", "FORK", "FORKS", "FORT", "FRD", "FRDS",
    "FREEWAY", "FREEWY", "FRG", "FRGS", "FRK", "FRKS", "FRRY", "FRST", "FRT",
    "FRWAY", "FRWY", "FRY", "FT", "FWY", "GARDEN", "GARDENS", "GARDN",
    "GATEWAY", "GATEWY", "GATWAY", "GDN", "GDNS", "GLEN", "GLENS", "GLN",
    "GLNS", "GRDEN", "GRDN", "GRDNS", "GREEN", "GREENS", "GRN", "GRNS",
    "GROV", "GROVE", "GROVES", "GRV", "GRVS", "GTWAY", "GTWY", "HARB",
    "HARBOR", "HARBORS", "HARBR", "HAVEN", "HBR", "HBRS", "HEIGHTS",
    "HIGHWAY", "HIGHWY", "HILL", "HILLS", "HIWAY", "HIWY", "HL", "HLLW",
    "HLS", "HOLLOW", "HOLLOWS", "HOLW", "HOLWS", "HRBOR", "HT", "HTS", "HVN",
    "HWAY", "HWY", "INLET", "INLT", "IS", "ISLAND", "ISLANDS", "ISLE",
    "ISLES", "ISLND", "ISLNDS", "ISS", "JCT", "JCTION", "JCTN", "JCTNS",
    "JCTS", "JUNCTION", "JUNCTIONS", "JUNCTN", "JUNCTON", "KEY", "KEYS",
    "KNL", "KNLS", "KNOL", "KNOLL", "KNOLLS", "KY", "KYS", "LAKE", "LAKES",
    "LAND", "LANDING", "LANE", "LCK", "LCKS", "LDG", "LDGE", "LF", "LGT",
    "LGTS", "LIGHT", "LIGHTS", "LK", "LKS", "LN", "LNDG", "LNDNG", "LOAF",
    "LOCK", "LOCKS", "LODG", "LODGE", "LOOP", "LOOPS", "MALL", "MANOR",
    "MANORS", "MDW", "MDWS", "MEADOW", "MEADOWS", "MEDOWS", "MEWS", "MILL",
    "MILLS", "MISSION", "MISSN", "ML", "MLS", "MNR", "MNRS", "MNT",
    "MNTAIN", "MNTN", "MNTNS", "MOTORWAY", "MOUNT", "MOUNTAIN", "MOUNTAINS",
    "MOUNTIN", "MSN", "MSSN", "MT", "MTIN", "MTN", "MTNS", "MTWY", "NCK",
    "NECK", "OPAS", "ORCH", "ORCHARD", "ORCHRD", "OVAL", "OVERPASS", "OVL",
    "PARK", "PARKS", "PARKWAY", "PARKWAYS", "PARKWY", "PASS", "PASSAGE",
    "PATH", "PATHS", "PIKE", "PIKES", "PINE", "PINES", "PKWAY", "PKWY",
    "PKWYS", "PKY", "PL", "PLACE", "PLAIN", "PLAINS", "PLAZA", "PLN", "PLNS",
    "PLZ", "PLZA", "PNE", "PNES", "POINT", "POINTS", "PORT", "PORTS", "PR",
    "PRAIRIE", "PRK", "PRR", "PRT", "PRTS", "PSGE", "PT", "PTS", "RAD",
    "RADIAL", "RADIEL", "RADL", "RAMP", "RANCH", "RANCHES", "RAPID",
    "RAPIDS", "RD", "RDG", "RDGE", "RDGS", "RDS", "REST", "RIDGE", "RIDGES",
    "RIV", "RIVER", "RIVR", "RNCH", "RNCHS", "ROAD", "ROADS", "ROUTE", "ROW",
    "RPD", "RPDS", "RST", "RTE", "RUE", "RUN", "RVR", "SHL", "SHLS", "SHOAL",
    "SHOALS", "SHOAR", "SHOARS", "SHORE", "SHORES", "SHR", "SHRS", "SKWY",
    "SKYWAY", "SMT", "SPG", "SPGS", "SPNG", "SPNGS", "SPRING", "SPRINGS",
    "SPRNG", "SPRNGS", "SPUR", "SPURS", "SQ", "SQR", "SQRE", "SQRS", "SQS",
    "SQU", "SQUARE", "SQUARES", "ST", "STA", "STATION", "STATN", "STN",
    "STR", "STRA", "STRAV", "STRAVEN", "STRAVENUE", "STRAVN", "STREAM",
    "STREET", "STREETS", "STREME", "STRM", "STRT", "STRVN", "STRVNUE",
    "STS", "SUMIT", "SUMITT", "SUMMIT", "TER", "TERR", "TERRACE",
    "THROUGHWAY", "TPKE", "TRACE", "TRACES", "TRACK", "TRACKS",
    "TRAFFICWAY", "TRAIL", "TRAILER", "TRAILS", "TRAK", "TRCE", "TRFY",
    "TRK", "TRKS", "TRL", "TRLR", "TRLRS", "TRLS", "TRNPK", "TRWY", "TUNEL",
    "TUNL", "TUNLS", "TUNNEL", "TUNNELS", "TUNNL", "TURNPIKE", "TURNPK",
    "UN", "UNDERPASS", "UNION", "UNIONS", "UNS", "UPAS", "VALLEY",
    "VALLEYS", "VALLY", "VDCT", "VIA", "VIADCT", "VIADUCT", "VIEW", "VIEWS",
    "VILL", "VILLAG", "VILLAGE", "VILLAGES", "VILLE", "VILLG", "VILLIAGE",
    "VIS", "VIST", "VISTA", "VL", "VLG", "VLGS", "VLLY", "VLY", "VLYS",
    "VST", "VSTA", "VW", "VWS", "WALK", "WALKS", "WALL", "WAY", "WAYS",
    "WELL", "WELLS", "WL", "WLS", "WY", "XING", "XRD", "XRDS",
    # Spanish street types
    "AVENIDA", "CALLE", "CLL", "CAMINITO", "CMT", "CAMINO", "CAM", "CERRADA",
    "CER", "CIRCULO", "ENTRADA", "ENT", "PASEO", "PSO", "PLACITA", "PLA",
    "RANCHO", "RCH", "VEREDA", "VER",
)

# USPS Publication 28, appendix C2
UNIT_DESIGNATORS = _terms(
    "Apartment", "APT", "Basement", "BLDG", "BOX", "BSMT", "Building",
    "Department", "DEPT", "FL", "Floor", "FRNT", "Front", "Hanger", "HNGR",
    "KEY", "LBBY", "Lobby", "LOT", "Lower", "LOWR", "OFC", "Office",
    "Penthouse", "PH", "PIER", "REAR", "RM", "Room", "SIDE", "SLIP", "Space",
    "SPC", "STE", "STOP", "Suite", "Trailer", "TRLR", "UNIT", "Upper",
    "UPPR", "Altura", "ALT", "Alturas", "ALTS", "Barriada", "BDA", "Barrio",
    "BO", "Carretera", "CARR", "Condominio", "COND", "Cooperativa", "COO",
    "Departamento", "Edificio", "EDIF", "Estancias", "EST", "Extensión",
    "EXT", "Industrial Interior", "IND INT", "Jardines", "JARD", "Mansiones",
    "MANS", "Parcelas", "PARC", "Quebrada", "QBDA", "Reparto", "REPTO",
    "Residencial", "RES", "Sector", "SECT", "Sección", "SECC", "Terraza",
    "TERR", "Urbanización", "URB",
)

DIRECTIONALS = _terms(
    "N", "NORTE", "NORTH", "NE", "NORESTE", "NORTHEAST", "NW", "NOROESTE",
    "NORTHWEST", "S", "SUR", "SOUTH", "SE", "SURESTE", "SOUTHEAST", "SW",
    "SUROESTE", "SOUTHWEST", "E", "ESTE", "EAST", "W", "OESTE", "WEST",
)

# HL7 table 0190 (address type) -> FHIR Address.use. Other codes (M, P, L,
# S, SH, V, ...) have no use.
ADDRESS_USE: Dict[str, str] = {
    "B": "work",
    "O": "work",
    "BI": "billing",
    "C": "temp",
    "H": "home",
}

_US_POSTAL = re.compile(r"^\d{5}(?:-\d{4})?$")
_CA_POSTAL = re.compile(r"^[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d$")
_CA_POSTAL_1 = re.compile(r"^[A-Za-z]\d[A-Za-z]$")
_CA_POSTAL_2 = re.compile(r"^\d[A-Za-z]\d$")
_TOKEN_SPLIT = re.compile(r"[,\s]+")
_MAX_STATE_WORDS = 3


# ------------------------------------------------------------------------------
# structured mode
# ------------------------------------------------------------------------------


def address_use(code: Optional[str]) -> Optional[str]:
    """FHIR Address.use for an HL7 address type code, or None."""
    if not code:
        return None
    return ADDRESS_USE.get(code.strip().upper())


def _primitive(components: Sequence[V2Value], index: int) -> Optional[str]:
    v = adjust_at(components, index)
    if isinstance(v, Primitive) and v.value and v.value.strip():
        return v.value.strip()
    return None


def _from_components(components: Sequence[V2Value]) -> Optional[Address]:
    lines = [
        line
        for line in (
            text_of(adjust_at(components, 0)).strip() or None,
            _primitive(components, 1),
        )
        if line
    ]
    return build(
        Address,
        line=lines,
        city=_primitive(components, 2),
        state=_primitive(components, 3),
        postalCode=_primitive(components, 4),
        country=_primitive(components, 5),
        use=address_use(_primitive(components, 6)),
        district=_primitive(components, 8),
    )


# ------------------------------------------------------------------------------
# free-text mode
# ------------------------------------------------------------------------------


def _words(part: str) -> List[str]:
    return [w for w in _TOKEN_SPLIT.split(part) if w]


def is_street_line(part: str) -> bool:
    """
    True when a part reads like a street line: it ends with a street suffix
    or directional ("100 Main St", "200 Elm Ave NW"), or starts with a unit
    designator ("Apt 4B", "Suite 100").
    """
    words = [w.strip(".").upper() for w in _words(part)]
    if not words:
        return False
    if words[-1] in STREET_SUFFIXES or words[-1] in DIRECTIONALS:
        return True
    if words[0] in UNIT_DESIGNATORS:
        return True
    return len(words) > 1 and " ".join(words[:2]) in UNIT_DESIGNATORS


def is_country(part: str) -> bool:
    return " ".join(part.replace(",", " ").split()).upper() in COUNTRIES


def _find_postal_code(words: List[str]) -> Tuple[Optional[str], List[str]]:
    """Postal code in ``words`` and the words left once it is removed."""
    for i, word in enumerate(words):
        if _US_POSTAL.match(word):
            return word, words[:i] + words[i + 1 :]
        if _CA_POSTAL.match(word):
            return f"{word[:3]} {word[-3:]}".upper(), words[:i] + words[i + 1 :]
        if (
            i + 1 < len(words)
            and _CA_POSTAL_1.match(word)
            and _CA_POSTAL_2.match(words[i + 1])
        ):
            code = f"{word} {words[i + 1]}".upper()
            return code, words[:i] + words[i + 2 :]
    return None, words


def _find_state(words: List[str]) -> Tuple[Optional[str], List[str]]:
    """
    State or province in ``words`` and the words left once it is removed.

    The state follows the city, so windows are tried from the right, longest
    first at each position: "New York NY" gives state "NY", city "New York".
    """
    for end in range(len(words), 0, -1):
        for size in range(min(_MAX_STATE_WORDS, end), 0, -1):
            start = end - size
            candidate = " ".join(words[start:end])
            if candidate.upper() in STATES:
                return candidate, words[:start] + words[end:]
    return None, words


def _city_state_postal(part: str, fields: Dict[str, object]) -> None:
    """Fill city, state and postal code from one part of a free-text address."""
    words = _words(part)
    postal, words = _find_postal_code(words)
    state, words = _find_state(words)
    if postal:
        fields["postalCode"] = postal
    if state:
        fields["state"] = state
    if (postal or state) and words:
        fields["city"] = " ".join(words)


def _split_parts(text: str) -> List[str]:
    lines = [" ".join(line.split()) for line in re.split(r"[\r\n]+", text)]
    lines = [line for line in lines if line]
    if len(lines) == 1:
        lines = [p.strip() for p in lines[0].split(",")]
    return [p for p in lines if p]


def parse_address(text: Optional[str]) -> Optional[Address]:
    """
    Decompose a free-text address.

    Parameters
    ----------
    text : str or None
        e.g. ``"100 Main St\\nSpringfield, IL 62704"`` or
        ``"100 Main St, Apt 2, Springfield IL 62704, USA"``.

    Returns
    -------
    Address or None
        ``text`` holds the input verbatim; lines, city, state, postal code
        and country hold what could be recognized. None for blank input.
    """
    if text is None or not text.strip():
        return None
    lines: List[str] = []
    fields: Dict[str, object] = {}
    for part in _split_parts(text):
        if not lines:
            lines.append(part)
        elif is_street_line(part):
            lines.append(part)
        elif "country" not in fields and is_country(part):
            fields["country"] = part
        elif "postalCode" not in fields:
            _city_state_postal(part, fields)
        else:
            LOG.debug("Unclassified address part %r", part)
    return build(Address, verbatim=("text",), text=text, line=lines, **fields)


# ------------------------------------------------------------------------------
# public API
# ------------------------------------------------------------------------------


def to_address(value: Optional[V2Value]) -> Optional[Address]:
    """
    Convert a V2 value to a FHIR Address.

    Primitives are parsed as free text; AD and XAD map positionally (street,
    other designation, city, state, zip, country, address type, -, district).
    Other variants give None.
    """
    value = adjust(value)
    if isinstance(value, Primitive):
        return parse_address(value.value)
    if isinstance(value, Composite) and value.tag in ("AD", "XAD"):
        return _from_components(value.components)
    return None


@register(FhirType.ADDRESS)
def _convert_address(
    value: Optional[V2Value],
    *,
    table: Optional[str] = None,
    lookup: Optional[LookupService] = None,
) -> Optional[Address]:
    return to_address(value)
