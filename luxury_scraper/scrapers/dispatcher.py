"""Walks paginated search results and publishes one queue message per listing URL."""

import logging
from dataclasses import dataclass, field
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from luxury_scraper.config import Settings
from luxury_scraper.utils.helpers import random_delay
from luxury_scraper.utils.retry import RetryPolicy
from luxury_scraper.work_queue import QueueMessage, WorkQueue

logger = logging.getLogger(__name__)

RESULT_ITEM_SELECTOR = ".search-list__item"
RESULT_LINK_SELECTOR = ".search-list__item a[href]"
NO_RESULTS_TEXT = "No properties found"


@dataclass
class DispatchStats:
    """Counters for one dispatcher run."""

    pages: int = 0
    failed_pages: list[int] = field(default_factory=list)
    published: int = 0
    duplicates: int = 0
    send_errors: int = 0


def extract_listing_urls(html: str, base_url: str) -> list[str]:
    """Absolute detail-page URLs found on one search results page, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    listing_prefix = f"{base_url.rstrip('/')}/p"

    urls = []
    for link in soup.select(RESULT_LINK_SELECTOR):
        url = urljoin(base_url, link["href"])
        if url.startswith(listing_prefix) and url not in urls:
            urls.append(url)
    return urls


def is_end_of_results(html: str) -> bool:
    """True when some element's whole text is the "no results" marker."""
    soup = BeautifulSoup(html, "html.parser")
    return any(
        element.get_text(" ", strip=True) == NO_RESULTS_TEXT
        for element in soup.find_all(True)
    )


class WorkDispatcher:
    """
    Producer side of the pipeline.

    URLs are deduplicated within the run only; the FIFO deduplication id
    covers re-sends across runs inside the queue's dedup window.
    """

    def __init__(
        self,
        settings: Settings,
        queue: WorkQueue,
        retry: RetryPolicy | None = None,
    ):
        self.settings = settings
        self.queue = queue
        self.retry = retry or RetryPolicy()
        self.seen: set[str] = set()

    def page_url(self, page_num: int) -> str:
        return f"{self.settings.search_url}?pag={page_num}"

    async def _load(self, page, url: str) -> str:
        """Navigate to a results page and return its HTML."""
        await page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=self.settings.navigation_timeout_ms,
        )
        return await page.content()

    async def run(
        self,
        page,
        max_pages: int | None = None,
        start_page: int = 1,
        dry_run: bool = False,
    ) -> DispatchStats:
        """
        Discover listing URLs and publish them.

        Args:
            page: Browser page used for all search result pages
            max_pages: Page bound (defaults to settings.max_pages)
            start_page: First results page to visit
            dry_run: Collect URLs without publishing

        Returns:
            DispatchStats for the run
        """
        stats = DispatchStats()
        limit = self.settings.max_pages if max_pages is None else max_pages
        last_page = start_page + limit - 1

        for page_num in range(start_page, last_page + 1):
            url = self.page_url(page_num)
            logger.info("Scraping page %d: %s", page_num, url)

            try:
                html = await self.retry.run(lambda: self._load(page, url), description=f"page {page_num}")
            except Exception as e:
                logger.error("Giving up on page %d: %s", page_num, e)
                stats.failed_pages.append(page_num)
                continue

            if is_end_of_results(html):
                logger.info("Reached end of results at page %d", page_num)
                break

            try:
                await page.wait_for_selector(
                    RESULT_ITEM_SELECTOR,
                    timeout=self.settings.selector_timeout_ms,
                )
            except Exception as e:
                logger.info("No listings on page %d (%s); stopping", page_num, e)
                break

            try:
                html = await self.retry.run(page.content, description=f"page {page_num} content")
            except Exception as e:
                logger.error("Could not read page %d: %s", page_num, e)
                stats.failed_pages.append(page_num)
                continue

            page_urls = extract_listing_urls(html, self.settings.base_url)
            if not page_urls:
                logger.info("Empty results page %d; stopping", page_num)
                break

            stats.pages += 1
            for listing_url in page_urls:
                await self._publish(listing_url, stats, dry_run)

            await random_delay(self.settings.delay_min, self.settings.delay_max)

        logger.info(
            "Dispatch complete: %d unique URLs from %d pages (%d failed pages)",
            len(self.seen), stats.pages, len(stats.failed_pages),
        )
        return stats

    async def _publish(self, url: str, stats: DispatchStats, dry_run: bool) -> None:
        if url in self.seen:
            stats.duplicates += 1
            return
        self.seen.add(url)

        message = QueueMessage(url=url, sequence_number=len(self.seen))
        if dry_run:
            logger.info("[dry-run] %s", url)
            stats.published += 1
            return

        try:
            await self.queue.send(message)
        except Exception as e:
            stats.send_errors += 1
            logger.error("Failed to send %s to queue: %s", url, e)
            return

        stats.published += 1
        logger.info("Sent to queue #%d: %s", message.sequence_number, url)
