# ec_index/collectors/ebay_collector.py

"""Collector for the eBay Browse API (OAuth client credentials)."""

import base64
import time
from typing import Any
from urllib.parse import urlencode

from ec_index.collectors.base_collector import BaseCollector
from ec_index.models.collection_result import SearchOptions
from ec_index.models.observation import Condition, Platform, PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.transport.http_client import Transport, TransportError
from ec_index.transport.rate_limiter import RateLimitStore

TOKEN_URL = "https://api.ebay.com/identity/v1/oauth2/token"
TOKEN_BODY = (
    "grant_type=client_credentials"
    "&scope=https://api.ebay.com/oauth/api_scope"
)
SEARCH_URL = "https://api.ebay.com/buy/browse/v1/item_summary/search"
# Refresh a minute before eBay says the token expires
TOKEN_EXPIRY_MARGIN = 60
DAY_SECONDS = 24 * 60 * 60

_NEW_CONDITION_IDS = {"1000", "1500", "1750"}
_REFURBISHED_CONDITION_IDS = {"2000", "2010", "2020", "2030", "2500"}


class AuthenticationError(Exception):
    """The OAuth token could not be obtained."""


def map_condition(item: dict[str, Any]) -> Condition:
    """Normalise eBay's condition id / text to a :class:`Condition`."""
    condition_id = str(item.get("conditionId", ""))
    if condition_id in _NEW_CONDITION_IDS:
        return Condition.NEW
    if condition_id in _REFURBISHED_CONDITION_IDS:
        return Condition.REFURBISHED
    text = str(item.get("condition", "")).upper()
    if "NEW" in text or "NEU" in text:
        return Condition.NEW
    if "REFURBISHED" in text:
        return Condition.REFURBISHED
    return Condition.USED


class EbayCollector(BaseCollector):
    """Browse API collector for fixed-price listings shipping to Germany."""

    platform = Platform.EBAY
    health_url = "https://api.ebay.com/"
    requests_per_second = 2.0
    max_results = 50
    query_delay = (1.0, 1.0)

    def __init__(
        self,
        transport: Transport | None = None,
        file_manager: FileManager | None = None,
        call_budget: RateLimitStore | None = None,
    ) -> None:
        super().__init__(
            "ebay", transport=transport, file_manager=file_manager,
        )
        self.app_id: str = self.settings.EBAY_APP_ID
        self.cert_id: str = self.settings.EBAY_CERT_ID
        self.marketplace: str = self.settings.EBAY_MARKETPLACE
        self.delivery_country: str = self.settings.EBAY_DELIVERY_COUNTRY
        self.daily_budget: int = self.settings.EBAY_DAILY_CALL_BUDGET
        self.call_budget = call_budget or RateLimitStore()
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    def is_configured(self) -> bool:
        return bool(self.app_id and self.cert_id)

    # ── OAuth ────────────────────────────────────────────

    def get_access_token(self) -> str:
        """Return the cached app token, fetching a new one when expired."""
        if self._access_token and time.time() < self._token_expires_at:
            return self._access_token
        if not self.is_configured():
            raise AuthenticationError(
                "eBay credentials not configured "
                "(set EBAY_APP_ID and EBAY_CERT_ID)"
            )

        credentials = base64.b64encode(
            f"{self.app_id}:{self.cert_id}".encode("utf-8")
        ).decode("ascii")
        try:
            resp = self.transport.post(
                TOKEN_URL,
                data=TOKEN_BODY,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Authorization": f"Basic {credentials}",
                    "Accept": "application/json",
                },
            )
            data: dict[str, Any] = resp.json()
            token = str(data["access_token"])
            expires_in = int(data.get("expires_in", 7200))
        except (TransportError, KeyError, TypeError, ValueError) as exc:
            self.logger.error(
                "[ebay] Failed to obtain OAuth token: %s", exc,
            )
            raise AuthenticationError(
                f"eBay OAuth token request failed: {exc}"
            ) from exc

        self._access_token = token
        self._token_expires_at = (
            time.time() + expires_in - TOKEN_EXPIRY_MARGIN
        )
        self.logger.info("[ebay] OAuth token obtained (%ds)", expires_in)
        return token

    # ── Search ───────────────────────────────────────────

    def build_filter(self, options: SearchOptions) -> str:
        """Browse API ``filter`` expression for the search options."""
        parts = ["buyingOptions:{FIXED_PRICE}"]
        if options.condition is Condition.NEW:
            parts.append("conditions:{NEW}")
        elif options.condition is Condition.REFURBISHED:
            parts.append(
                "conditions:{SELLER_REFURBISHED|MANUFACTURER_REFURBISHED}"
            )
        if options.price_min is not None or options.price_max is not None:
            low = f"{options.price_min:g}" if options.price_min is not None else ""
            high = f"{options.price_max:g}" if options.price_max is not None else ""
            parts.append(f"price:[{low}..{high}]" if high else f"price:[{low}]")
            parts.append("priceCurrency:EUR")
        parts.append(f"deliveryCountry:{self.delivery_country}")
        return ",".join(parts)

    def _spend_call(self) -> None:
        decision = self.call_budget.hit(
            f"ebay:{self.app_id}", self.daily_budget, DAY_SECONDS,
        )
        if not decision.allowed:
            raise TransportError(
                f"eBay daily call budget of {self.daily_budget} exhausted",
                url=SEARCH_URL,
            )
        if decision.remaining < self.daily_budget // 10:
            self.logger.warning(
                "[ebay] %d calls left in today's budget",
                decision.remaining,
            )

    def search(
        self, query: str, options: SearchOptions,
    ) -> list[PriceObservation]:
        """Query item summaries for ``query``."""
        token = self.get_access_token()
        self._spend_call()

        params: dict[str, str] = {
            "q": query,
            "limit": str(options.max_results),
            "filter": self.build_filter(options),
        }
        if options.sort_by == "price":
            params["sort"] = "price"
        try:
            resp = self.transport.get(
                f"{SEARCH_URL}?{urlencode(params)}",
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                    "X-EBAY-C-MARKETPLACE-ID": self.marketplace,
                    "X-EBAY-C-ENDUSERCTX": (
                        f"contextualLocation=country={self.delivery_country}"
                    ),
                },
            )
        except TransportError as exc:
            if exc.status_code == 401:
                self._access_token = None
            raise

        data: dict[str, Any] = resp.json()
        items: list[dict[str, Any]] = data.get("itemSummaries") or []
        if not items:
            self.logger.debug("[ebay] No results for %r", query)
        observations: list[PriceObservation] = []
        for item in items:
            try:
                observations.append(self.transform_item(item))
            except (KeyError, TypeError, ValueError) as exc:
                self.logger.debug("[ebay] Skipping item: %s", exc)
        return observations

    def transform_item(self, item: dict[str, Any]) -> PriceObservation:
        """Map one ``itemSummary`` to an observation."""
        seller: dict[str, Any] = item.get("seller") or {}
        shipping_options = item.get("shippingOptions") or [{}]
        shipping_cost = (shipping_options[0].get("shippingCost") or {}).get(
            "value"
        )
        feedback = seller.get("feedbackPercentage")
        score = seller.get("feedbackScore")
        return PriceObservation(
            product_id=str(item["itemId"]),
            platform=self.platform,
            price=float(item["price"]["value"]),
            currency=str(item["price"].get("currency", "EUR")),
            url=str(item.get("itemWebUrl", "")),
            title=str(item.get("title", "")),
            shipping=(
                float(shipping_cost) if shipping_cost is not None else None
            ),
            seller=seller.get("username"),
            seller_rating=(
                float(feedback) / 100 if feedback is not None else None
            ),
            seller_review_count=int(score) if score is not None else None,
            condition=map_condition(item),
        )
