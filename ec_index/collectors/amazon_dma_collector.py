# ec_index/collectors/amazon_dma_collector.py

"""Collector for amazon.de public search results pages."""

import re
from urllib.parse import urlencode, urljoin

from bs4 import Tag

from ec_index.collectors.scraping_collector import ScrapingCollector
from ec_index.filters.price_parser import parse_count, parse_price
from ec_index.models.collection_result import SearchOptions
from ec_index.models.observation import Platform, PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.transport.http_client import Transport

_STAR_CLASS_RE = re.compile(r"a-star-small-(\d)-?(\d)?")
_STAR_TEXT_RE = re.compile(r"(\d)[,.](\d)\s*von\s*5")


class AmazonDmaCollector(ScrapingCollector):
    """Scraper for amazon.de search results (no API credentials needed)."""

    platform = Platform.AMAZON
    requests_per_second = 0.15
    max_results = 20
    max_queries = 3
    query_delay = (8.0, 15.0)
    base_url = "https://www.amazon.de"

    def __init__(
        self,
        transport: Transport | None = None,
        file_manager: FileManager | None = None,
        fallback_session: object = None,
    ) -> None:
        super().__init__(
            "amazon",
            transport=transport,
            file_manager=file_manager,
            fallback_session=fallback_session,
        )

    def build_search_url(self, query: str, options: SearchOptions) -> str:
        """Search URL with an optional ``p_36`` price range in cents."""
        params: dict[str, str] = {"k": query}
        if options.price_min or options.price_max:
            low = round((options.price_min or 0) * 100)
            high = round((options.price_max or 99999) * 100)
            params["rh"] = f"p_36:{low}-{high}"
        return f"{self.base_url}/s?{urlencode(params)}"

    def _parse_price(self, card: Tag) -> float | None:
        whole = re.sub(r"\D", "", self.text_of(card, "price_whole"))
        if whole:
            fraction = re.sub(r"\D", "", self.text_of(card, "price_fraction"))
            value = float(f"{whole}.{fraction or '00'}")
            return value if value > 0 else None
        return parse_price(self.text_of(card, "price_text"))

    def _parse_rating(self, card: Tag) -> float | None:
        el = self.select_first(card, "rating")
        if el is None:
            return None
        classes = " ".join(el.get("class") or [])
        match = _STAR_CLASS_RE.search(classes)
        if match:
            return float(f"{match.group(1)}.{match.group(2) or 0}")
        match = _STAR_TEXT_RE.search(el.get_text(" ", strip=True))
        if match:
            return float(f"{match.group(1)}.{match.group(2)}")
        return None

    def parse_item(self, card: Tag) -> PriceObservation | None:
        """Parse one ``s-search-result`` card."""
        asin = str(card.get("data-asin") or "")
        if len(asin) < 5:
            return None
        title = self.text_of(card, "title")
        price = self._parse_price(card)
        if not title or price is None:
            return None

        link = self.select_first(card, "url")
        href = str(link.get("href") or "") if link else ""
        url = urljoin(self.base_url, href) if href else (
            f"{self.base_url}/dp/{asin}"
        )
        is_prime = self.select_first(card, "prime") is not None
        return PriceObservation(
            product_id=asin,
            platform=self.platform,
            price=price,
            url=url,
            title=title,
            rating=self._parse_rating(card),
            review_count=parse_count(self.text_of(card, "review_count")),
            shipping=0.0 if is_prime else None,
        )
