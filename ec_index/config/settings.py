# ec_index/config/settings.py

"""Central configuration for the EC-Index collector."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_path(name: str, default: Path) -> Path:
    """Read a directory path from the environment, relative to BASE_DIR."""
    raw = os.getenv(name)
    if not raw:
        return default
    path = Path(raw)
    return path if path.is_absolute() else Settings.BASE_DIR / path


class Settings:
    """Central configuration for the EC-Index collector."""

    # --- Transport ---
    RATE_LIMIT_RPS: float = float(os.getenv("RATE_LIMIT_RPS", "1"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))  # secs
    BACKOFF_BASE: float = 2.0           # 2 ** attempt seconds
    CLIENT_ID: str = (
        "EC-Index-DataCollector/1.0 "
        "(https://ec-index.eu; contact@ec-index.eu) - Market Research Bot"
    )
    CLIENT_ID_HEADER: str = "X-Client-Id"
    DEFAULT_HEADERS: dict[str, str] = {
        "User-Agent": CLIENT_ID,
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,*/*;q=0.8"
        ),
        "Accept-Language": "de-DE,de;q=0.9,en;q=0.8",
    }

    # --- Browser Impersonation (scraping variants) ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    USER_AGENTS: list[str] = [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/131.0.0.0 Safari/537.36"
        ),
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) "
            "Gecko/20100101 Firefox/133.0"
        ),
    ]
    BROWSER_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,*/*;q=0.8"
        ),
        "Accept-Language": "de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Cache-Control": "max-age=0",
    }

    # --- Scraping pacing ---
    SCRAPE_DELAY_MIN: float = 8.0       # Seconds between queries
    SCRAPE_DELAY_MAX: float = 25.0
    SESSION_WARMUP_MIN: float = 3.0
    SESSION_WARMUP_MAX: float = 5.0
    BLOCK_COOLDOWN_MIN: float = 60.0    # Seconds after a soft block
    BLOCK_COOLDOWN_MAX: float = 120.0
    BLOCK_MARKERS: list[str] = [
        "captcha",
        "validatecaptcha",
        "robot check",
        "sind sie ein roboter",
        "verify you are human",
        "unusual traffic",
        "challenges.cloudflare.com",
        "cf-turnstile",
    ]

    # --- Credentials ---
    AMAZON_ACCESS_KEY: str = os.getenv("AMAZON_ACCESS_KEY", "")
    AMAZON_SECRET_KEY: str = os.getenv("AMAZON_SECRET_KEY", "")
    AMAZON_PARTNER_TAG: str = os.getenv("AMAZON_PARTNER_TAG", "")
    AMAZON_REGION: str = os.getenv("AMAZON_REGION", "eu-west-1")
    AMAZON_HOST: str = os.getenv("AMAZON_HOST", "webservices.amazon.de")
    EBAY_APP_ID: str = os.getenv("EBAY_APP_ID", "")
    EBAY_CERT_ID: str = os.getenv("EBAY_CERT_ID", "")
    EBAY_MARKETPLACE: str = os.getenv("EBAY_MARKETPLACE", "EBAY_DE")
    EBAY_DELIVERY_COUNTRY: str = os.getenv("EBAY_DELIVERY_COUNTRY", "DE")
    EBAY_DAILY_CALL_BUDGET: int = int(
        os.getenv("EBAY_DAILY_CALL_BUDGET", "5000")
    )

    # --- Scheduling (local time) ---
    WEEKLY_RUN_DAY: str = "sunday"
    MIDWEEK_RUN_DAY: str = "wednesday"
    RUN_TIME: str = "03:00"
    HEARTBEAT_TIME: str = "09:00"
    SCHEDULER_POLL_SECONDS: float = 30.0

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "ec_index" / "config" / "selectors.json"
    BENCHMARKS_PATH: Path = (
        BASE_DIR / "ec_index" / "config" / "benchmarks.json"
    )
    DATA_DIR: Path = BASE_DIR / "data"
    RAW_DATA_DIR: Path = DATA_DIR / "raw"
    PROCESSED_DATA_DIR: Path = DATA_DIR / "processed"
    EXPORT_DIR: Path = DATA_DIR / "export"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Collectors (platform registry) ---
    AVAILABLE_COLLECTORS: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon (DMA)",
            "collector": (
                "ec_index.collectors.amazon_dma_collector"
                ".AmazonDmaCollector"
            ),
        },
        {
            "id": "amazon_api",
            "label": "Amazon PA-API",
            "collector": (
                "ec_index.collectors.amazon_collector.AmazonCollector"
            ),
        },
        {
            "id": "ebay",
            "label": "eBay",
            "collector": "ec_index.collectors.ebay_collector.EbayCollector",
        },
        {
            "id": "idealo",
            "label": "Idealo",
            "collector": (
                "ec_index.collectors.idealo_collector.IdealoCollector"
            ),
        },
        {
            "id": "geizhals",
            "label": "Geizhals",
            "collector": (
                "ec_index.collectors.geizhals_collector.GeizhalsCollector"
            ),
        },
    ]


Settings.BENCHMARKS_PATH = _env_path(
    "BENCHMARKS_PATH", Settings.BENCHMARKS_PATH
)
Settings.RAW_DATA_DIR = _env_path("RAW_DATA_DIR", Settings.RAW_DATA_DIR)
Settings.PROCESSED_DATA_DIR = _env_path(
    "PROCESSED_DATA_DIR", Settings.PROCESSED_DATA_DIR
)
Settings.EXPORT_DIR = _env_path("EXPORT_DIR", Settings.EXPORT_DIR)
Settings.LOGS_DIR = _env_path("LOGS_DIR", Settings.LOGS_DIR)
