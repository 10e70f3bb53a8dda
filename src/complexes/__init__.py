"""
Complexes Module - urban-renewal projects and their market listings.
"""

from src.complexes.database import ComplexModel, ListingModel

__all__ = [
    "ComplexModel",
    "ListingModel",
]
