"""Browser-driven scrapers for luxuryestate.com."""

from luxury_scraper.scrapers.base import BrowserSession
from luxury_scraper.scrapers.dispatcher import WorkDispatcher
from luxury_scraper.scrapers.extractor import (
    DirectDomImages,
    GalleryModalImages,
    PageExtractor,
)

__all__ = [
    "BrowserSession",
    "DirectDomImages",
    "GalleryModalImages",
    "PageExtractor",
    "WorkDispatcher",
]
