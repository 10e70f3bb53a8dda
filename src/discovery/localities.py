"""
Target regions and the daily locality rotation.
"""
from typing import Dict, List, Optional

TARGET_REGIONS: Dict[str, List[str]] = {
    "גוש דן": ["תל אביב", "רמת גן", "גבעתיים", "בני ברק", "חולון", "בת ים", "אור יהודה", "קריית אונו", "יהוד"],
    "שרון": ["רעננה", "כפר סבא", "הוד השרון", "הרצליה", "נתניה", "רמת השרון", "כוכב יאיר"],
    "מרכז": ["פתח תקווה", "ראשון לציון", "רחובות", "נס ציונה", "לוד", "רמלה", "מודיעין"],
    "ירושלים": ["ירושלים", "בית שמש", "מבשרת ציון", "מעלה אדומים"],
    "חיפה והקריות": ["חיפה", "קריית ביאליק", "קריית מוצקין", "קריית ים", "קריית אתא", "נשר", "טירת כרמל"],
}

ALL_TARGET_LOCALITIES: List[str] = [city for cities in TARGET_REGIONS.values() for city in cities]


def region_of(city: str) -> Optional[str]:
    for region, cities in TARGET_REGIONS.items():
        if city in cities:
            return region
    return None


def localities_for_region(region: str) -> List[str]:
    if region not in TARGET_REGIONS:
        raise ValueError(f"Unknown region: {region}. Available: {', '.join(TARGET_REGIONS)}")
    return list(TARGET_REGIONS[region])


def localities_for_day(day_of_year: int, per_run: int, localities: Optional[List[str]] = None) -> List[str]:
    """
    Day-of-year sharding: each day takes the next `per_run` localities,
    wrapping around, so the whole list is covered every len/per_run days.
    """
    pool = localities if localities is not None else ALL_TARGET_LOCALITIES
    if not pool or per_run <= 0:
        return []
    count = min(per_run, len(pool))
    start = ((day_of_year - 1) * per_run) % len(pool)
    return [pool[(start + i) % len(pool)] for i in range(count)]
