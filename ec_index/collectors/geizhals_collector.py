# ec_index/collectors/geizhals_collector.py

"""Collector for geizhals.de price-comparison search pages."""

import re
from urllib.parse import urlencode, urljoin

from bs4 import Tag

from ec_index.collectors.scraping_collector import ScrapingCollector, title_id
from ec_index.filters.price_parser import parse_count, parse_price
from ec_index.models.collection_result import SearchOptions
from ec_index.models.observation import Platform, PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.transport.http_client import Transport

# Product pages end in "-a<id>.html"
_PRODUCT_ID_RE = re.compile(r"-a(\d+)\.html")


class GeizhalsCollector(ScrapingCollector):
    """Scraper for geizhals.de lowest-offer prices."""

    platform = Platform.GEIZHALS
    requests_per_second = 0.5
    max_results = 25
    query_delay = (2.5, 2.5)
    base_url = "https://geizhals.de"

    def __init__(
        self,
        transport: Transport | None = None,
        file_manager: FileManager | None = None,
        fallback_session: object = None,
    ) -> None:
        super().__init__(
            "geizhals",
            transport=transport,
            file_manager=file_manager,
            fallback_session=fallback_session,
        )

    def build_search_url(self, query: str, options: SearchOptions) -> str:
        """Search URL with the ``bpmin``/``bpmax`` price filters."""
        params: dict[str, str] = {"fs": query, "in": ""}
        if options.price_min is not None:
            params["bpmin"] = f"{options.price_min:g}"
        if options.price_max is not None:
            params["bpmax"] = f"{options.price_max:g}"
        return f"{self.base_url}/?{urlencode(params)}"

    @staticmethod
    def product_id(title: str, url: str) -> str:
        """Geizhals article number from the URL, else a title hash."""
        match = _PRODUCT_ID_RE.search(url)
        if match:
            return f"gh_{match.group(1)}"
        return title_id("gh", title)

    def parse_item(self, card: Tag) -> PriceObservation | None:
        title = self.text_of(card, "title")
        # Prices read "ab 123,45 €"
        price = parse_price(self.text_of(card, "price"))
        if not title or price is None:
            return None

        link = self.select_first(card, "url")
        href = str(link.get("href") or "") if link else ""
        offers = parse_count(self.text_of(card, "offers"))
        return PriceObservation(
            product_id=self.product_id(title, href),
            platform=self.platform,
            price=price,
            url=urljoin(self.base_url, href) if href else self.base_url,
            title=title,
            in_stock=offers is None or offers > 0,
        )
