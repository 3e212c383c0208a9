"""Queue worker loop: receive, process, delete on success."""

import asyncio
import logging
import time
from dataclasses import dataclass

from luxury_scraper.assets import AssetFetcher
from luxury_scraper.config import DuplicatePolicy, Settings
from luxury_scraper.errors import ExtractionError
from luxury_scraper.models import PropertyRecord
from luxury_scraper.scrapers.extractor import PageExtractor
from luxury_scraper.storage import PropertySink, SaveResult
from luxury_scraper.utils.helpers import random_delay
from luxury_scraper.work_queue import QueueMessage, ReceivedMessage, WorkQueue

logger = logging.getLogger(__name__)


@dataclass
class WorkerStats:
    """Counters for one worker run."""

    processed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    empty_receives: int = 0


class PropertyPipeline:
    """Extract -> fetch assets -> upsert, for one listing URL."""

    def __init__(
        self,
        settings: Settings,
        extractor: PageExtractor,
        fetcher: AssetFetcher,
        sink: PropertySink,
    ):
        self.settings = settings
        self.extractor = extractor
        self.fetcher = fetcher
        self.sink = sink

    async def process(self, page, url: str) -> tuple[SaveResult, PropertyRecord]:
        """
        Run the whole pipeline on an open page.

        Raises:
            ExtractionError: when the page yields no record
            PersistenceError: when the sink rejects the record
        """
        await random_delay(self.settings.delay_min, self.settings.delay_max)
        await self.extractor.load(page, url)

        record = await self.extractor.extract(page, url)
        if record is None:
            raise ExtractionError(f"Failed to extract property data from {url}")

        if self.settings.on_duplicate == DuplicatePolicy.SKIP and self.sink.exists(record.reference):
            logger.info("Skipped existing: %s", url)
            return SaveResult.SKIPPED, record

        logger.info("Found %d images for %s", len(record.media.images), record.reference)
        images = await self.fetcher.fetch_all(record.external_id, record.media.images, page)
        record = record.with_images(images)

        return self.sink.save(record), record


class QueueWorker:
    """
    Long-running consumer of the work queue.

    Idle -> Receiving -> (empty: back off) | (message: Processing -> Deleting).
    A message is deleted only once its record is persisted (or known to be
    persisted already); any failure leaves it for redelivery after the
    visibility timeout.
    """

    def __init__(
        self,
        settings: Settings,
        queue: WorkQueue,
        pipeline: PropertyPipeline,
        browser,
        batch: bool = True,
    ):
        self.settings = settings
        self.queue = queue
        self.pipeline = pipeline
        self.browser = browser
        self.batch = batch
        self.stats = WorkerStats()
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        """Ask the loop to finish after the current message."""
        if not self._stopping.is_set():
            logger.info("Stop requested; finishing current message")
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    async def _sleep(self, seconds: float) -> None:
        """Sleep that wakes early on stop."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> WorkerStats:
        """Poll until stopped or, in batch mode, until too many consecutive empty receives."""
        started = time.monotonic()
        consecutive_empty = 0

        while not self.stopping:
            try:
                received = await self.queue.receive()
            except Exception as e:
                logger.error("Error polling queue: %s", e)
                await self._sleep(self.settings.error_delay)
                continue

            if received is None:
                consecutive_empty += 1
                self.stats.empty_receives += 1
                if self.batch:
                    logger.info(
                        "No messages in queue (attempt %d/%d)",
                        consecutive_empty, self.settings.max_empty_receives,
                    )
                    if consecutive_empty >= self.settings.max_empty_receives:
                        logger.info("Maximum empty receives reached. Exiting...")
                        break
                await self._sleep(self.settings.empty_receive_delay)
                continue

            consecutive_empty = 0
            await self.handle(received)

        logger.info(
            "Worker finished in %.1fs: %d processed, %d failed",
            time.monotonic() - started, self.stats.processed, self.stats.failed,
        )
        return self.stats

    async def handle(self, received: ReceivedMessage) -> bool:
        """Process one delivery; returns True when the message was deleted."""
        try:
            message = QueueMessage.decode(received.body)
        except Exception as e:
            self.stats.failed += 1
            logger.error("Malformed message %s left on queue: %s", received.message_id, e)
            return False

        label = f"#{message.sequence_number}" if message.sequence_number is not None else ""
        logger.info("Processing property %s: %s", label, message.url)
        started = time.monotonic()

        page = None
        try:
            page = await self.browser.new_page()
            result, record = await self.pipeline.process(page, message.url)
        except Exception as e:
            self.stats.failed += 1
            logger.error("Error processing %s: %s", message.url, e)
            return False
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.warning("Error closing page: %s", e)

        try:
            await self.queue.delete(received)
        except Exception as e:
            # The record is stored; redelivery will hit the dedup check
            self.stats.failed += 1
            logger.error("Failed to delete message for %s: %s", message.url, e)
            return False

        self.stats.processed += 1
        if result == SaveResult.INSERTED:
            self.stats.inserted += 1
        elif result == SaveResult.UPDATED:
            self.stats.updated += 1
        else:
            self.stats.skipped += 1

        logger.info(
            "Completed %s (%s, %s) in %.2fs",
            message.url, record.reference, result.value, time.monotonic() - started,
        )
        return True
