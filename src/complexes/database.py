"""
Database models for complexes (urban-renewal projects) and their listings.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Float, ForeignKey, Text, JSON,
    Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from src.core.database import Base
from src.core.utils import utcnow


class ComplexModel(Base):
    """
    SQLAlchemy model for urban-renewal complexes.
    Maps to the 'complexes' table.
    """
    __tablename__ = 'complexes'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    name_key = Column(String(255), nullable=False)  # normalize_name(name); dedup key
    city = Column(String(100), nullable=False, index=True)  # canonical locality
    region = Column(String(100))
    neighborhood = Column(String(100))
    addresses = Column(Text)

    # Scope
    existing_units = Column(Integer)
    planned_units = Column(Integer)
    multiplier = Column(Float)
    num_buildings = Column(Integer)

    # Developer
    developer = Column(String(255))
    developer_strength = Column(String(20), default="unknown")
    developer_risk_level = Column(String(20), default="unknown")

    # Planning
    status = Column(String(30), nullable=False, default="unknown", index=True)
    plan_stage = Column(String(255))  # free text from research engines
    plan_number = Column(String(100))
    declaration_date = Column(Date)
    local_committee_date = Column(Date)
    district_committee_date = Column(Date)
    national_committee_date = Column(Date)
    certainty_factor = Column(Float, nullable=False, default=1.0)
    signature_percent = Column(Float)
    signature_source = Column(String(30))

    # Pricing
    accurate_price_sqm = Column(Float)
    city_avg_price_sqm = Column(Float)
    actual_premium = Column(Float)
    theoretical_premium_min = Column(Float)
    theoretical_premium_max = Column(Float)
    premium_gap = Column(Float)
    price_trend = Column(String(20))
    transaction_count = Column(Integer, default=0)

    # News & distress
    news_sentiment = Column(String(20), default="unknown")
    has_negative_news = Column(Boolean, default=False)
    has_enforcement_cases = Column(Boolean, default=False)
    is_receivership = Column(Boolean, default=False)
    has_bankruptcy_proceedings = Column(Boolean, default=False)
    research_summary = Column(Text)

    # Scores
    priority_score = Column(Integer, index=True)
    priority_components = Column(JSON)
    tier = Column(String(20), index=True)
    attractiveness_score = Column(Integer, index=True)
    attractiveness_components = Column(JSON)
    stress_max = Column(Integer)
    stress_avg = Column(Float)
    scored_at = Column(DateTime)

    # Provenance
    discovery_source = Column(String(50), index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_enriched_at = Column(DateTime, nullable=True)
    last_committee_check_at = Column(DateTime, nullable=True)

    listings = relationship("ListingModel", back_populates="complex", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('name_key', 'city', name='uq_complexes_name_city'),
        Index('idx_complexes_priority_desc', priority_score.desc()),
    )

    def committee_date(self, level: str):
        return getattr(self, f"{level}_committee_date")

    def __repr__(self):
        return f"<Complex(name='{self.name}', city='{self.city}', priority={self.priority_score})>"


class ListingModel(Base):
    """
    Market offers for apartments inside a complex.
    Created and updated by external scraping collaborators; scoring reads them.
    """
    __tablename__ = 'listings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    complex_id = Column(Integer, ForeignKey('complexes.id', ondelete="CASCADE"), nullable=False, index=True)

    source = Column(String(30), default="yad2")
    source_listing_id = Column(String(100))
    url = Column(String(500))

    asking_price = Column(Float)
    original_price = Column(Float)
    area_sqm = Column(Float)
    rooms = Column(Float)
    floor = Column(Integer)

    first_seen = Column(Date)
    last_seen = Column(Date)
    days_on_market = Column(Integer, default=0)
    price_changes = Column(Integer, default=0)
    total_price_drop_percent = Column(Float, default=0.0)

    description_snippet = Column(Text)
    has_urgent_keywords = Column(Boolean, default=False)
    urgent_keywords_found = Column(Text)
    is_foreclosure = Column(Boolean, default=False)
    is_inheritance = Column(Boolean, default=False)

    stress_score = Column(Integer, default=0, index=True)
    stress_time_score = Column(Integer, default=0)
    stress_price_score = Column(Integer, default=0)
    stress_indicator_score = Column(Integer, default=0)

    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    complex = relationship("ComplexModel", back_populates="listings")

    def __repr__(self):
        return f"<Listing(id={self.id}, complex_id={self.complex_id}, price={self.asking_price})>"
