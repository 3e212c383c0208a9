"""Data models."""

from luxury_scraper.models.property import (
    Agency,
    FeatureMap,
    FeatureValue,
    Location,
    Media,
    Multi,
    NumericFeatures,
    Present,
    Price,
    PropertyDetails,
    PropertyImage,
    PropertyRecord,
    Text,
)

__all__ = [
    "Agency",
    "FeatureMap",
    "FeatureValue",
    "Location",
    "Media",
    "Multi",
    "NumericFeatures",
    "Present",
    "Price",
    "PropertyDetails",
    "PropertyImage",
    "PropertyRecord",
    "Text",
]
