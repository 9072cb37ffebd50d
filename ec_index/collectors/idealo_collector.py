# ec_index/collectors/idealo_collector.py

"""Collector for idealo.de price-comparison search pages."""

from urllib.parse import urlencode, urljoin

from bs4 import Tag

from ec_index.collectors.scraping_collector import ScrapingCollector, title_id
from ec_index.filters.price_parser import parse_count, parse_price
from ec_index.models.collection_result import SearchOptions
from ec_index.models.observation import Platform, PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.transport.http_client import Transport


class IdealoCollector(ScrapingCollector):
    """Scraper for idealo.de; very slow pacing, first two queries only."""

    platform = Platform.IDEALO
    requests_per_second = 0.1
    max_results = 15
    max_queries = 2
    query_delay = (15.0, 25.0)
    error_delay = (30.0, 60.0)
    base_url = "https://www.idealo.de"

    def __init__(
        self,
        transport: Transport | None = None,
        file_manager: FileManager | None = None,
        fallback_session: object = None,
    ) -> None:
        super().__init__(
            "idealo",
            transport=transport,
            file_manager=file_manager,
            fallback_session=fallback_session,
        )

    def build_search_url(self, query: str, options: SearchOptions) -> str:
        return (
            f"{self.base_url}/preisvergleich/MainSearchProductCategory.html?"
            f"{urlencode({'q': query})}"
        )

    def parse_item(self, card: Tag) -> PriceObservation | None:
        title = self.text_of(card, "title")
        price = parse_price(self.text_of(card, "price"))
        if not title or price is None:
            return None

        link = self.select_first(card, "url")
        href = str(link.get("href") or "") if link else ""
        offers = parse_count(self.text_of(card, "offers"))
        return PriceObservation(
            product_id=title_id("idealo", title),
            platform=self.platform,
            price=price,
            url=urljoin(self.base_url, href) if href else self.base_url,
            title=title,
            in_stock=offers is None or offers > 0,
        )
