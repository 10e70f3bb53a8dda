"""
Seller Stress Index (SSI).
Scores how motivated the seller behind a listing is, 0-100.

    time on market   0-40
    price drops      0-35
    indicators       0-25  (urgent wording, foreclosure, inheritance, repeated drops)
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from src.core.data_types import ListingSnapshot
from src.core.utils import clamp

URGENT_KEYWORDS = [
    'דחוף', 'הזדמנות', 'מתחת למחיר', 'חייב למכור', 'חייבים למכור',
    'מכירה מהירה', 'מכירה דחופה', 'ירושה', 'כינוס', 'כונס נכסים',
    'עוזבים את הארץ', 'עוזב את הארץ', 'מחיר מציאה', 'למכירה מיידית',
    'מחיר סופי', 'ללא מתווכים', 'הנחה', 'מוכרחים', 'במחיר נמוך',
    'מוטיבציה גבוהה', 'פינוי מהיר',
    'urgent', 'must sell', 'below market', 'quick sale', 'relocating',
]
FORECLOSURE_KEYWORDS = ['כינוס', 'כונס נכסים', 'כונס', 'הוצאה לפועל', 'foreclosure', 'receiver']
INHERITANCE_KEYWORDS = ['ירושה', 'עיזבון', 'יורשים', 'inheritance', 'estate sale']

TIME_CAP = 40
PRICE_CAP = 35
INDICATOR_CAP = 25

HIGH_STRESS = 70


@dataclass
class KeywordFlags:
    urgent_keywords: List[str] = field(default_factory=list)
    is_foreclosure: bool = False
    is_inheritance: bool = False

    @property
    def has_urgent_keywords(self) -> bool:
        return bool(self.urgent_keywords)


@dataclass
class StressBreakdown:
    time_score: int
    price_score: int
    indicator_score: int
    days_on_market: int
    price_drop_percent: float
    flags: KeywordFlags

    @property
    def total(self) -> int:
        return int(clamp(self.time_score + self.price_score + self.indicator_score, 0, 100))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stress_score": self.total,
            "time_score": self.time_score,
            "price_score": self.price_score,
            "indicator_score": self.indicator_score,
            "days_on_market": self.days_on_market,
            "price_drop_percent": round(self.price_drop_percent, 2),
            "urgent_keywords": self.flags.urgent_keywords,
        }


def detect_keywords(description: Optional[str]) -> KeywordFlags:
    text = (description or "").lower()
    return KeywordFlags(
        urgent_keywords=[kw for kw in URGENT_KEYWORDS if kw in text],
        is_foreclosure=any(kw in text for kw in FORECLOSURE_KEYWORDS),
        is_inheritance=any(kw in text for kw in INHERITANCE_KEYWORDS),
    )


class StressScorer:
    """Listing-level SSI plus complex-level aggregates."""

    # (upper bound exclusive, points)
    TIME_STEPS = [(30, 0), (60, 10), (90, 20), (120, 30)]
    PRICE_STEPS = [(5, 10), (10, 20), (15, 30)]

    @classmethod
    def time_score(cls, days_on_market: int) -> int:
        days = days_on_market or 0
        for bound, points in cls.TIME_STEPS:
            if days < bound:
                return points
        return TIME_CAP

    @classmethod
    def price_score(cls, drop_percent: float) -> int:
        drop = drop_percent or 0.0
        if drop <= 0:
            return 0
        for bound, points in cls.PRICE_STEPS:
            if drop < bound:
                return points
        return PRICE_CAP

    @classmethod
    def indicator_score(cls, listing: ListingSnapshot, flags: KeywordFlags) -> int:
        score = 0
        if flags.has_urgent_keywords:
            score += 10
        if flags.is_foreclosure or listing.is_foreclosure:
            score += 15
        if flags.is_inheritance or listing.is_inheritance:
            score += 10
        if (listing.price_changes or 0) >= 2:
            score += 5
        return min(INDICATOR_CAP, score)

    @staticmethod
    def days_on_market(listing: ListingSnapshot, today: Optional[date] = None) -> int:
        days = listing.days_on_market or 0
        if listing.first_seen:
            today = today or date.today()
            days = max(days, (today - listing.first_seen).days)
        return max(0, days)

    @staticmethod
    def price_drop_percent(listing: ListingSnapshot) -> float:
        """Drop from the original price; a price back above the original is no drop."""
        if listing.original_price and listing.asking_price:
            drop = (listing.original_price - listing.asking_price) / listing.original_price * 100
        else:
            drop = listing.total_price_drop_percent or 0.0
        return max(0.0, drop)

    @classmethod
    def score(cls, listing: ListingSnapshot, today: Optional[date] = None) -> StressBreakdown:
        flags = detect_keywords(listing.description)
        days = cls.days_on_market(listing, today)
        drop = cls.price_drop_percent(listing)
        return StressBreakdown(
            time_score=cls.time_score(days),
            price_score=cls.price_score(drop),
            indicator_score=cls.indicator_score(listing, flags),
            days_on_market=days,
            price_drop_percent=drop,
            flags=flags,
        )

    @classmethod
    def aggregate(cls, listings: Iterable[ListingSnapshot], today: Optional[date] = None) -> Dict[str, Any]:
        """Max and average SSI across active listings."""
        scores = [cls.score(l, today).total for l in listings if l.is_active]
        if not scores:
            return {"max": 0, "avg": 0.0, "count": 0}
        return {
            "max": max(scores),
            "avg": round(sum(scores) / len(scores), 1),
            "count": len(scores),
        }
