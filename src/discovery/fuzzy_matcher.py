"""
Fuzzy de-duplication of discovered complexes.

Research engines return the same project under many phrasings: with or
without "complex"/"urban renewal" prefixes, with a trailing "(120 units)",
with hyphens or abbreviations. A match is declared when

    (a) normalized full names are equal, or
    (b) core names are equal and at least 3 characters, or
    (c) one core name contains the other, both at least 3 characters, or
    (d) one full name contains the other, both at least 4 characters.

General edit-distance similarity is not part of the decision. rapidfuzz only
reports the closest non-matching name for diagnostics.
"""
import logging
import re
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz
from rapidfuzz.process import extractOne

logger = logging.getLogger(__name__)

ExistingNamesProvider = Callable[[str], Awaitable[List[str]]]

MIN_CORE_LEN = 3
MIN_FULL_LEN = 4

# Quote marks used in Hebrew abbreviations (ת"א, פ"ת) and stray punctuation
_QUOTES_RE = re.compile(r"[\"'`״׳“”‘’]")
_SEPARATORS_RE = re.compile(r"[-_–/,.:;]+")
_WS_RE = re.compile(r"\s+")
_TRAILING_PAREN_RE = re.compile(r"\s*\([^()]*\)\s*$")

# Sorted longest first when applied
GENERIC_PREFIXES = [
    # English
    "urban renewal complex",
    "urban renewal project",
    "urban renewal",
    "pinuy binuy",
    "evacuation construction",
    "renewal complex",
    "complex",
    "compound",
    "neighborhood",
    "neighbourhood",
    "project",
    "the",
    # Hebrew
    "מתחם פינוי בינוי",
    "פרויקט פינוי בינוי",
    "פינוי בינוי",
    "התחדשות עירונית",
    "מתחם",
    "שכונת",
    "שכונה",
    "פרויקט",
    "רובע",
]
_PREFIXES = sorted(GENERIC_PREFIXES, key=len, reverse=True)

# Keys are already passed through _locality_key()
LOCALITY_ALIASES = {
    "תא": "תל אביב",
    "תל אביב יפו": "תל אביב",
    "תלאביב": "תל אביב",
    "tel aviv": "תל אביב",
    "tel aviv yafo": "תל אביב",
    "tlv": "תל אביב",
    "ראשלצ": "ראשון לציון",
    "ראשל צ": "ראשון לציון",
    "rishon lezion": "ראשון לציון",
    "פת": "פתח תקווה",
    "פתח תקוה": "פתח תקווה",
    "petah tikva": "פתח תקווה",
    "petach tikva": "פתח תקווה",
    "בב": "בני ברק",
    "bnei brak": "בני ברק",
    "רג": "רמת גן",
    "ramat gan": "רמת גן",
    "givatayim": "גבעתיים",
    "גבעתים": "גבעתיים",
    "holon": "חולון",
    "bat yam": "בת ים",
    "herzliya": "הרצליה",
    "netanya": "נתניה",
    "raanana": "רעננה",
    "kfar saba": "כפר סבא",
    "jerusalem": "ירושלים",
    "haifa": "חיפה",
}


def _clean(text: str) -> str:
    text = _QUOTES_RE.sub("", text or "")
    text = _SEPARATORS_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def _locality_key(city: str) -> str:
    return _clean(city).lower()


def normalize_locality(city: Optional[str]) -> str:
    """
    Canonical locality name. Known abbreviations and spelling variants map to
    the canonical Hebrew name; anything else is returned whitespace-cleaned.
    """
    if not city:
        return ""
    cleaned = _WS_RE.sub(" ", city.replace("־", " ")).strip()
    key = _locality_key(cleaned)
    if key in LOCALITY_ALIASES:
        return LOCALITY_ALIASES[key]
    # קרית -> קריית (official spelling)
    if key.startswith("קרית "):
        return "קריית " + cleaned.split(" ", 1)[1]
    return cleaned


def normalize_name(name: Optional[str]) -> str:
    """Lowercase, punctuation-free, single-spaced form of a complex name."""
    if not name:
        return ""
    return _clean(name).lower()


def _strip_prefixes(text: str) -> str:
    changed = True
    while changed and text:
        changed = False
        for prefix in _PREFIXES:
            if text == prefix:
                break
            if text.startswith(prefix + " "):
                text = text[len(prefix) + 1:].lstrip()
                changed = True
                break
    return text


def core_name(name: Optional[str]) -> str:
    """
    Name with generic prefixes and trailing parenthetical annotations removed.
    "Urban-Renewal Central Block (120 units)" -> "central block".
    """
    if not name:
        return ""
    text = name
    while _TRAILING_PAREN_RE.search(text):
        text = _TRAILING_PAREN_RE.sub("", text)
    return _strip_prefixes(normalize_name(text))


def names_match(a: str, b: str) -> bool:
    full_a, full_b = normalize_name(a), normalize_name(b)
    if not full_a or not full_b:
        return False
    if full_a == full_b:
        return True

    core_a, core_b = core_name(a), core_name(b)
    if len(core_a) >= MIN_CORE_LEN and len(core_b) >= MIN_CORE_LEN:
        if core_a == core_b:
            return True
        if core_a in core_b or core_b in core_a:
            return True

    if len(full_a) >= MIN_FULL_LEN and len(full_b) >= MIN_FULL_LEN:
        if full_a in full_b or full_b in full_a:
            return True

    return False


def find_match(candidate: str, existing: Iterable[str]) -> Optional[str]:
    """First existing name that matches `candidate`, or None."""
    for name in existing:
        if names_match(candidate, name):
            return name
    return None


def closest_existing(
    candidate: str, existing: Iterable[str], score_cutoff: float = 70
) -> Optional[Tuple[str, float]]:
    """
    Nearest existing name by token-set similarity of core names.
    Diagnostics only; never used to decide a match.
    """
    names = [n for n in existing if n]
    if not names:
        return None
    cores = [core_name(n) for n in names]
    out = extractOne(core_name(candidate), cores, scorer=fuzz.token_set_ratio, score_cutoff=score_cutoff)
    if not out:
        return None
    _core, score, idx = out
    return names[idx], score


class FuzzyMatcher:
    """
    Answers "does this complex already exist in this locality?".

    Existing names are read through an injected async provider taking a
    canonical locality, so the matcher itself is storage-agnostic and read-only.
    """

    def __init__(self, existing_names: ExistingNamesProvider):
        self.existing_names = existing_names

    async def exists(self, candidate_name: str, locality: str) -> bool:
        city = normalize_locality(locality)
        existing = await self.existing_names(city)
        match = find_match(candidate_name, existing)
        if match is not None:
            logger.debug(f"'{candidate_name}' matches existing '{match}' in {city}")
            return True

        near = closest_existing(candidate_name, existing)
        if near:
            logger.info(f"'{candidate_name}' kept as new in {city}; closest existing '{near[0]}' ({near[1]:.0f})")
        return False
