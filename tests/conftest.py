"""Shared fixtures."""

import pytest

from luxury_scraper.config import Settings
from luxury_scraper.models.database import Database


@pytest.fixture
def settings(tmp_path):
    """Settings with all delays off and stores under tmp_path."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        output_dir=str(tmp_path / "out"),
        queue_url="https://sqs.eu-north-1.amazonaws.com/123456789012/test.fifo",
        delay_min=0,
        delay_max=0,
        empty_receive_delay=0,
        error_delay=0,
        retry_delay=0,
        log_file=None,
    )


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.init()
    yield db
    db.dispose()
