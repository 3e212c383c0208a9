"""Utility functions."""

from luxury_scraper.utils.helpers import (
    amenity_keyword_match,
    clean_text,
    derive_amenity_flags,
    digits_only,
    extract_number,
    normalize_amenity_field,
    normalize_boolean,
    parse_price,
    random_delay,
)
from luxury_scraper.utils.retry import RetryPolicy

__all__ = [
    "RetryPolicy",
    "amenity_keyword_match",
    "clean_text",
    "derive_amenity_flags",
    "digits_only",
    "extract_number",
    "normalize_amenity_field",
    "normalize_boolean",
    "parse_price",
    "random_delay",
]
