# ec_index/collectors/amazon_collector.py

"""Collector for the Amazon Product Advertising API 5.0 (SearchItems)."""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any

from ec_index.collectors.base_collector import BaseCollector
from ec_index.models.collection_result import SearchOptions
from ec_index.models.observation import Condition, Platform, PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.transport.http_client import Transport

SERVICE = "ProductAdvertisingAPI"
SEARCH_PATH = "/paapi5/searchitems"
SEARCH_TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.SearchItems"
ALGORITHM = "AWS4-HMAC-SHA256"

SEARCH_RESOURCES: list[str] = [
    "ItemInfo.Title",
    "ItemInfo.ByLineInfo",
    "Offers.Listings.Price",
    "Offers.Listings.Condition",
    "Offers.Listings.DeliveryInfo.IsFreeShippingEligible",
    "Offers.Listings.MerchantInfo",
]


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def sign_request(
    payload: str,
    access_key: str,
    secret_key: str,
    region: str,
    host: str,
    now: datetime | None = None,
) -> dict[str, str]:
    """Return SearchItems headers carrying an AWS Signature v4.

    The signing key is derived by chaining HMAC-SHA256 over the date,
    region, service and the literal ``aws4_request``.
    """
    moment = now or datetime.now(timezone.utc)
    amz_date = moment.strftime("%Y%m%dT%H%M%SZ")
    date_stamp = amz_date[:8]

    headers: dict[str, str] = {
        "content-encoding": "amz-1.0",
        "content-type": "application/json; charset=utf-8",
        "host": host,
        "x-amz-date": amz_date,
        "x-amz-target": SEARCH_TARGET,
    }
    signed_headers = ";".join(sorted(headers))
    canonical_headers = "".join(
        f"{name}:{headers[name]}\n" for name in sorted(headers)
    )
    payload_hash = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    canonical_request = "\n".join([
        "POST",
        SEARCH_PATH,
        "",
        canonical_headers,
        signed_headers,
        payload_hash,
    ])

    scope = f"{date_stamp}/{region}/{SERVICE}/aws4_request"
    string_to_sign = "\n".join([
        ALGORITHM,
        amz_date,
        scope,
        hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
    ])

    k_date = _hmac(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, SERVICE)
    k_signing = _hmac(k_service, "aws4_request")
    signature = hmac.new(
        k_signing, string_to_sign.encode("utf-8"), hashlib.sha256,
    ).hexdigest()

    headers["Authorization"] = (
        f"{ALGORITHM} Credential={access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    return headers


class AmazonCollector(BaseCollector):
    """Signed-API collector for amazon.de via PA-API 5.0.

    Requires an Associates account; skipped without credentials.
    """

    platform = Platform.AMAZON
    requests_per_second = 1.0
    max_results = 10
    query_delay = (1.0, 1.0)

    def __init__(
        self,
        transport: Transport | None = None,
        file_manager: FileManager | None = None,
    ) -> None:
        super().__init__(
            "amazon_api", transport=transport, file_manager=file_manager,
        )
        self.access_key: str = self.settings.AMAZON_ACCESS_KEY
        self.secret_key: str = self.settings.AMAZON_SECRET_KEY
        self.partner_tag: str = self.settings.AMAZON_PARTNER_TAG
        self.region: str = self.settings.AMAZON_REGION
        self.host: str = self.settings.AMAZON_HOST

    def is_configured(self) -> bool:
        return bool(self.access_key and self.secret_key and self.partner_tag)

    def probe_url(self) -> str:
        return f"https://{self.host}/"

    def build_payload(self, query: str, options: SearchOptions) -> str:
        """JSON body for a SearchItems call (prices in cents)."""
        body: dict[str, Any] = {
            "PartnerTag": self.partner_tag,
            "PartnerType": "Associates",
            "Keywords": query,
            "SearchIndex": "All",
            # PA-API caps ItemCount at 10
            "ItemCount": min(options.max_results, 10),
            "Resources": SEARCH_RESOURCES,
            "Condition": (
                "New" if options.condition is Condition.NEW else "Any"
            ),
        }
        if options.price_min:
            body["MinPrice"] = round(options.price_min * 100)
        if options.price_max:
            body["MaxPrice"] = round(options.price_max * 100)
        return json.dumps(body)

    def search(
        self, query: str, options: SearchOptions,
    ) -> list[PriceObservation]:
        """Run one SearchItems call and map items with an offer."""
        payload = self.build_payload(query, options)
        headers = sign_request(
            payload,
            self.access_key,
            self.secret_key,
            self.region,
            self.host,
        )
        resp = self.transport.post(
            f"https://{self.host}{SEARCH_PATH}",
            data=payload,
            headers=headers,
        )
        data: dict[str, Any] = resp.json()
        items = (data.get("SearchResult") or {}).get("Items") or []
        observations: list[PriceObservation] = []
        for item in items:
            try:
                obs = self.transform_item(item)
            except (KeyError, TypeError, ValueError) as exc:
                self.logger.debug("[amazon_api] Skipping item: %s", exc)
                continue
            if obs is not None:
                observations.append(obs)
        return observations

    def transform_item(self, item: dict[str, Any]) -> PriceObservation | None:
        """Map one PA-API item; ``None`` when it has no priced listing."""
        listings = (item.get("Offers") or {}).get("Listings") or []
        if not listings:
            return None
        listing: dict[str, Any] = listings[0]
        price_info = listing.get("Price") or {}
        amount = price_info.get("Amount")
        if amount is None:
            return None
        delivery = listing.get("DeliveryInfo") or {}
        condition_value = str(
            (listing.get("Condition") or {}).get("Value", "")
        ).lower()
        title = (
            ((item.get("ItemInfo") or {}).get("Title") or {})
            .get("DisplayValue", "")
        )
        return PriceObservation(
            product_id=str(item["ASIN"]),
            platform=self.platform,
            price=float(amount),
            currency=str(price_info.get("Currency", "EUR")),
            url=str(item.get("DetailPageURL", "")),
            title=str(title),
            shipping=(
                0.0 if delivery.get("IsFreeShippingEligible") else None
            ),
            seller=(listing.get("MerchantInfo") or {}).get("Name"),
            condition=(
                Condition.NEW if condition_value == "new" else Condition.USED
            ),
        )
