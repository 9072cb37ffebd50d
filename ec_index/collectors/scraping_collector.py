# ec_index/collectors/scraping_collector.py

"""Shared machinery for collectors that scrape public HTML pages."""

import hashlib
import json
import random
from abc import abstractmethod
from enum import Enum
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup, Tag

from ec_index.collectors.base_collector import BaseCollector
from ec_index.config.settings import Settings
from ec_index.models.collection_result import SearchOptions
from ec_index.models.observation import PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.transport.http_client import Transport, TransportError

# Statuses a marketplace uses to push back on a scraper
BLOCK_STATUS_CODES: frozenset[int] = frozenset({403, 429})


def title_id(prefix: str, title: str) -> str:
    """Stable identifier for listings that expose no product id."""
    digest = hashlib.sha1(title.strip().lower().encode("utf-8")).hexdigest()
    return f"{prefix}_{digest[:12]}"


class ScrapeState(str, Enum):
    """Lifecycle of a scraping collector during one collection."""

    UNINITIALIZED = "uninitialized"
    SESSION_WARM = "session_warm"
    SEARCHING = "searching"
    COOLDOWN = "cooldown"
    DONE = "done"


class ScrapingCollector(BaseCollector):
    """Base class for HTML-scraping collectors.

    Requests go through the shared transport on a browser-impersonating
    ``curl_cffi`` session with a rotating User-Agent.  The session is
    warmed on the landing page first so it carries the site's cookies.
    A soft block (a marker in the body, or HTTP 403/429) puts the
    collector into a cooldown; afterwards the page is retried once
    through ``cloudscraper`` and, if still blocked, the query yields
    nothing.
    """

    base_url: str = ""
    query_delay = (Settings.SCRAPE_DELAY_MIN, Settings.SCRAPE_DELAY_MAX)
    error_delay = (15.0, 30.0)

    def __init__(
        self,
        source_name: str,
        transport: Transport | None = None,
        file_manager: FileManager | None = None,
        fallback_session: Any = None,
    ) -> None:
        super().__init__(
            source_name,
            transport=transport,
            file_manager=file_manager,
            impersonate=True,
        )
        self.selectors: dict[str, list[str]] = self._load_selectors()
        self.state = ScrapeState.UNINITIALIZED
        self._fallback_session = fallback_session
        self.block_count: int = 0

    def _load_selectors(self) -> dict[str, list[str]]:
        """Load fallback CSS selectors for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, list[str]] = all_selectors.get(
            self.source_name, {}
        )
        return result

    # ── Selector helpers ─────────────────────────────────

    def select_all(self, soup: BeautifulSoup | Tag, name: str) -> list[Tag]:
        """Elements for the first selector of ``name`` that matches any."""
        for selector in self.selectors.get(name, []):
            found = soup.select(selector)
            if found:
                return list(found)
        return []

    def select_first(self, node: BeautifulSoup | Tag, name: str) -> Tag | None:
        """First element matched by the ordered selectors of ``name``."""
        for selector in self.selectors.get(name, []):
            el = node.select_one(selector)
            if el is not None:
                return el
        return None

    def text_of(self, node: BeautifulSoup | Tag, name: str) -> str:
        """Stripped text of the first match, or an empty string."""
        el = self.select_first(node, name)
        return el.get_text(" ", strip=True) if el else ""

    # ── Session and pacing ───────────────────────────────

    def probe_url(self) -> str:
        return f"{self.base_url}/"

    def _browser_headers(self) -> dict[str, str]:
        """Browser-like headers with a freshly rotated User-Agent."""
        return {
            **self.settings.BROWSER_HEADERS,
            "User-Agent": random.choice(self.settings.USER_AGENTS),
            "Referer": f"{self.base_url}/",
        }

    def _warmup_session(self) -> None:
        """Visit the landing page so the session picks up cookies."""
        self.logger.info(
            "[%s] Warming session on %s", self.source_name, self.base_url,
        )
        try:
            self.transport.get(
                f"{self.base_url}/", headers=self._browser_headers(),
            )
        except TransportError as exc:
            self.logger.warning(
                "[%s] Session warm-up failed, continuing cold: %s",
                self.source_name,
                exc,
            )
        self._pause(
            (
                self.settings.SESSION_WARMUP_MIN,
                self.settings.SESSION_WARMUP_MAX,
            ),
            "after warm-up",
        )
        self.state = ScrapeState.SESSION_WARM

    def _before_queries(self) -> None:
        if self.state in (ScrapeState.UNINITIALIZED, ScrapeState.DONE):
            self._warmup_session()

    def _after_queries(self) -> None:
        self.state = ScrapeState.DONE

    def _cooldown(self, reason: str) -> None:
        """Back off after a soft block; may be entered repeatedly."""
        self.state = ScrapeState.COOLDOWN
        self.block_count += 1
        self.logger.warning(
            "[%s] Blocked (%s), cooling down (block #%d)",
            self.source_name,
            reason,
            self.block_count,
        )
        self._pause(
            (
                self.settings.BLOCK_COOLDOWN_MIN,
                self.settings.BLOCK_COOLDOWN_MAX,
            ),
            "cooldown",
        )
        self.state = ScrapeState.SEARCHING

    # ── Fetching ─────────────────────────────────────────

    def _block_marker(self, html: str) -> str | None:
        """Return the block marker found in a page with no product cards."""
        lower = html.lower()
        for marker in self.settings.BLOCK_MARKERS:
            if marker in lower:
                soup = BeautifulSoup(html, "lxml")
                if not self.select_all(soup, "product_card"):
                    return marker
                return None
        return None

    def _fallback(self) -> Any:
        if self._fallback_session is None:
            _cs: Any = cloudscraper
            self._fallback_session = _cs.create_scraper()
        return self._fallback_session

    def _fetch_via_cloudscraper(self, url: str) -> BeautifulSoup | None:
        """Single retry of a blocked page through cloudscraper."""
        self.logger.info(
            "[%s] Retrying %s through cloudscraper", self.source_name, url,
        )
        self.transport.rate_limiter.acquire()
        try:
            resp: Any = self._fallback().get(
                url,
                headers=self._browser_headers(),
                timeout=self.transport.timeout,
            )
        except Exception as exc:
            self.logger.error(
                "[%s] cloudscraper retry failed: %s",
                self.source_name,
                exc,
                exc_info=True,
            )
            return None
        text = str(resp.text)
        if resp.status_code != 200 or self._block_marker(text):
            self.logger.warning(
                "[%s] Still blocked after cooldown (HTTP %s), "
                "giving up on this query",
                self.source_name,
                resp.status_code,
            )
            return None
        return BeautifulSoup(text, "lxml")

    def fetch_page(self, url: str) -> BeautifulSoup | None:
        """GET a results page; ``None`` when the site keeps blocking us."""
        self.state = ScrapeState.SEARCHING
        try:
            resp = self.transport.get(url, headers=self._browser_headers())
        except TransportError as exc:
            if exc.status_code not in BLOCK_STATUS_CODES:
                raise
            reason = f"HTTP {exc.status_code}"
        else:
            text = resp.text
            marker = self._block_marker(text)
            if marker is None:
                return BeautifulSoup(text, "lxml")
            reason = f"marker {marker!r}"

        self._cooldown(reason)
        return self._fetch_via_cloudscraper(url)

    # ── Search ───────────────────────────────────────────

    @abstractmethod
    def build_search_url(self, query: str, options: SearchOptions) -> str:
        """Return the results-page URL for ``query``."""
        ...

    @abstractmethod
    def parse_item(self, card: Tag) -> PriceObservation | None:
        """Parse one result card; ``None`` when it has no usable price."""
        ...

    def search(
        self, query: str, options: SearchOptions,
    ) -> list[PriceObservation]:
        """Scrape the first results page for ``query``."""
        soup = self.fetch_page(self.build_search_url(query, options))
        if soup is None:
            return []

        observations: list[PriceObservation] = []
        skipped = 0
        for card in self.select_all(soup, "product_card"):
            if len(observations) >= options.max_results:
                break
            try:
                obs = self.parse_item(card)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                skipped += 1
                self.logger.debug(
                    "[%s] Skipping unparseable item: %s",
                    self.source_name,
                    exc,
                )
                continue
            if obs is None:
                skipped += 1
                continue
            observations.append(obs)

        self.logger.debug(
            "[%s] Parsed %d items (%d skipped) for %r",
            self.source_name,
            len(observations),
            skipped,
            query,
        )
        return observations
