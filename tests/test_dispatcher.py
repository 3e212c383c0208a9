"""Tests for search-result walking and URL publishing."""

import asyncio

from fakes import SITE, FakePage, FakeQueue
from luxury_scraper.scrapers.dispatcher import (
    WorkDispatcher,
    extract_listing_urls,
    is_end_of_results,
)
from luxury_scraper.utils.retry import RetryPolicy, fixed_backoff


def results_page(*hrefs):
    items = "".join(
        f'<div class="search-list__item"><a href="{href}">Listing</a></div>' for href in hrefs
    )
    return f"<html><body><div class=\"search-list\">{items}</div></body></html>"


NO_RESULTS = "<html><body><p>No properties found</p></body></html>"


def no_retry():
    return RetryPolicy(max_attempts=1, backoff=fixed_backoff(0))


class FailingQueue(FakeQueue):
    async def send(self, message):
        raise ConnectionError("queue down")


class NavigatingPage(FakePage):
    """Page whose first ``content_failures`` reads fail mid-navigation."""

    def __init__(self, content_failures=1, **kwargs):
        super().__init__(**kwargs)
        self.content_failures = content_failures

    async def content(self):
        if self.content_failures > 0:
            self.content_failures -= 1
            raise RuntimeError("Unable to retrieve content because the page is navigating")
        return await super().content()


# =============================================================================
# PARSING
# =============================================================================

class TestExtractListingUrls:
    """Tests for extract_listing_urls."""

    def test_relative_and_absolute(self):
        html = results_page("/p1", f"{SITE}/p2", "/p1", "/spain?pag=2", "https://other.com/p3")
        assert extract_listing_urls(html, SITE) == [f"{SITE}/p1", f"{SITE}/p2"]

    def test_end_marker(self):
        assert is_end_of_results(NO_RESULTS)
        assert not is_end_of_results(results_page("/p1"))

    def test_end_marker_needs_whole_element(self):
        """The phrase inside longer text is not the end of results."""
        html = results_page("/p1").replace(
            "</body>", "<p>Nearby: No properties found in this area yet</p></body>"
        )
        assert not is_end_of_results(html)
        assert is_end_of_results("<div><span> No properties found </span></div>")


# =============================================================================
# DISPATCHER
# =============================================================================

class TestWorkDispatcher:
    """Tests for WorkDispatcher.run."""

    def test_publishes_unique_urls(self, settings):
        """Each URL is sent once across pages, numbered in discovery order."""
        dispatcher = WorkDispatcher(settings, FakeQueue(), retry=no_retry())
        page = FakePage(pages={
            dispatcher.page_url(1): results_page("/p1", "/p2"),
            dispatcher.page_url(2): results_page("/p2", "/p3"),
            dispatcher.page_url(3): NO_RESULTS,
        })

        stats = asyncio.run(dispatcher.run(page, max_pages=10))

        sent = dispatcher.queue.sent
        assert [m.url for m in sent] == [f"{SITE}/p1", f"{SITE}/p2", f"{SITE}/p3"]
        assert [m.sequence_number for m in sent] == [1, 2, 3]
        assert stats.pages == 2
        assert stats.published == 3
        assert stats.duplicates == 1
        assert len(page.goto_calls) == 3

    def test_page_url(self, settings):
        dispatcher = WorkDispatcher(settings, FakeQueue())
        assert dispatcher.page_url(3) == f"{SITE}/spain?pag=3"

    def test_max_pages_bound(self, settings):
        dispatcher = WorkDispatcher(settings, FakeQueue(), retry=no_retry())
        page = FakePage(pages={
            dispatcher.page_url(n): results_page(f"/p{n}") for n in range(1, 6)
        })

        stats = asyncio.run(dispatcher.run(page, max_pages=2))

        assert stats.pages == 2
        assert len(dispatcher.queue.sent) == 2

    def test_empty_page_stops(self, settings):
        """A page without listing items ends the walk."""
        dispatcher = WorkDispatcher(settings, FakeQueue(), retry=no_retry())
        page = FakePage(pages={
            dispatcher.page_url(1): results_page("/p1"),
            dispatcher.page_url(2): "<html><body>Nothing here</body></html>",
            dispatcher.page_url(3): results_page("/p3"),
        })

        stats = asyncio.run(dispatcher.run(page, max_pages=5))

        assert stats.pages == 1
        assert len(page.goto_calls) == 2

    def test_failed_page_skipped(self, settings):
        """A page that keeps timing out is recorded and the walk continues."""
        retry = RetryPolicy(max_attempts=3, backoff=fixed_backoff(0))
        dispatcher = WorkDispatcher(settings, FakeQueue(), retry=retry)
        page = FakePage(
            pages={
                dispatcher.page_url(1): results_page("/p1"),
                dispatcher.page_url(2): results_page("/p2"),
            },
            goto_failures=3,
        )

        stats = asyncio.run(dispatcher.run(page, max_pages=2))

        assert stats.failed_pages == [1]
        assert [m.url for m in dispatcher.queue.sent] == [f"{SITE}/p2"]

    def test_dry_run(self, settings):
        dispatcher = WorkDispatcher(settings, None, retry=no_retry())
        page = FakePage(pages={dispatcher.page_url(1): results_page("/p1", "/p2")})

        stats = asyncio.run(dispatcher.run(page, max_pages=1, dry_run=True))

        assert stats.published == 2
        assert dispatcher.seen == {f"{SITE}/p1", f"{SITE}/p2"}

    def test_send_error_counted(self, settings):
        dispatcher = WorkDispatcher(settings, FailingQueue(), retry=no_retry())
        page = FakePage(pages={dispatcher.page_url(1): results_page("/p1")})

        stats = asyncio.run(dispatcher.run(page, max_pages=1))

        assert stats.send_errors == 1
        assert stats.published == 0

    def test_zero_max_pages_visits_nothing(self, settings):
        """An explicit 0 is a bound, not a request for the default."""
        dispatcher = WorkDispatcher(settings, FakeQueue(), retry=no_retry())
        page = FakePage(pages={dispatcher.page_url(1): results_page("/p1")})

        stats = asyncio.run(dispatcher.run(page, max_pages=0))

        assert page.goto_calls == []
        assert stats.pages == 0
        assert dispatcher.queue.sent == []

    def test_unreadable_page_skipped(self, settings):
        """A content read that fails mid-navigation fails only that page."""
        dispatcher = WorkDispatcher(settings, FakeQueue(), retry=no_retry())
        page = NavigatingPage(pages={
            dispatcher.page_url(1): results_page("/p1"),
            dispatcher.page_url(2): results_page("/p2"),
            dispatcher.page_url(3): results_page("/p3"),
        })

        stats = asyncio.run(dispatcher.run(page, max_pages=3))

        assert stats.failed_pages == [1]
        assert [m.url for m in dispatcher.queue.sent] == [f"{SITE}/p2", f"{SITE}/p3"]
        assert stats.pages == 2

    def test_content_read_retried(self, settings):
        """The retry policy covers the content read along with navigation."""
        retry = RetryPolicy(max_attempts=2, backoff=fixed_backoff(0))
        dispatcher = WorkDispatcher(settings, FakeQueue(), retry=retry)
        page = NavigatingPage(pages={dispatcher.page_url(1): results_page("/p1")})

        stats = asyncio.run(dispatcher.run(page, max_pages=1))

        assert stats.failed_pages == []
        assert [m.url for m in dispatcher.queue.sent] == [f"{SITE}/p1"]
        assert len(page.goto_calls) == 2
