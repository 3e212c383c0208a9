"""Process-scoped application context."""

import logging

from luxury_scraper.assets import AssetFetcher, build_storage
from luxury_scraper.config import RecordSink, Settings
from luxury_scraper.models.database import Database
from luxury_scraper.scrapers.base import BrowserSession
from luxury_scraper.scrapers.extractor import PageExtractor
from luxury_scraper.storage import PropertySink, build_sink
from luxury_scraper.utils.retry import RetryPolicy, fixed_backoff
from luxury_scraper.work_queue import SqsWorkQueue, WorkQueue
from luxury_scraper.worker import PropertyPipeline

logger = logging.getLogger(__name__)


class AppContext:
    """
    Owns the long-lived clients of one worker process.

    Built once at startup and passed to the components that need it;
    ``close`` releases everything and is safe to call more than once.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.retry = RetryPolicy(
            max_attempts=settings.retry_attempts,
            backoff=fixed_backoff(settings.retry_delay),
        )
        self.browser = BrowserSession(settings)
        self._queue: WorkQueue | None = None
        self._database: Database | None = None
        self._sink: PropertySink | None = None
        self._fetcher: AssetFetcher | None = None

    @property
    def queue(self) -> WorkQueue:
        if self._queue is None:
            if not self.settings.queue_url:
                raise ValueError("LXSCRAPER_QUEUE_URL is not set")
            self._queue = SqsWorkQueue(
                queue_url=self.settings.queue_url,
                region=self.settings.aws_region,
                group_id=self.settings.queue_group_id,
                visibility_timeout=self.settings.visibility_timeout,
                wait_time_seconds=self.settings.wait_time_seconds,
                retry=self.retry,
            )
        return self._queue

    @property
    def database(self) -> Database:
        if self._database is None:
            self._database = Database(self.settings.database_url)
        return self._database

    @property
    def sink(self) -> PropertySink:
        if self._sink is None:
            database = self.database if self.settings.record_sink == RecordSink.RELATIONAL else None
            self._sink = build_sink(self.settings, database)
        return self._sink

    @property
    def fetcher(self) -> AssetFetcher:
        if self._fetcher is None:
            self._fetcher = AssetFetcher(self.settings, build_storage(self.settings))
        return self._fetcher

    def pipeline(self) -> PropertyPipeline:
        extractor = PageExtractor(self.settings, retry=self.retry)
        return PropertyPipeline(self.settings, extractor, self.fetcher, self.sink)

    async def close(self) -> None:
        """Teardown on shutdown: browser, HTTP client, store connections."""
        if self._fetcher is not None:
            await self._fetcher.close()
        await self.browser.close()
        if self._sink is not None:
            self._sink.close()
        if self._database is not None:
            self._database.dispose()
        logger.info("Context closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
