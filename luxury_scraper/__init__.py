"""Queue-driven scraper for luxuryestate.com property listings."""

__version__ = "0.1.0"
