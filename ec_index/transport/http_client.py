# ec_index/transport/http_client.py

"""Rate-limited, retrying HTTP transport shared by every collector."""

import logging
import time
from typing import Any

from curl_cffi import requests as curl_requests

from ec_index.config.settings import Settings
from ec_index.transport.rate_limiter import RateLimiter

logger = logging.getLogger("ec_index.transport")


class TransportError(Exception):
    """An HTTP call that failed after the transport's retry policy."""

    def __init__(
        self,
        message: str,
        url: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Network errors, 5xx and 429 are worth another attempt."""
        if self.status_code is None:
            return True
        return self.status_code >= 500 or self.status_code == 429


class Transport:
    """Wrap a session with pacing, a timeout and exponential backoff.

    Every attempt (retries included) first waits on the rate limiter.
    Retryable failures back off ``BACKOFF_BASE ** attempt`` seconds;
    any other 4xx raises immediately.
    """

    def __init__(
        self,
        name: str,
        requests_per_second: float | None = None,
        max_retries: int | None = None,
        timeout: int | None = None,
        session: Any = None,
        rate_limiter: RateLimiter | None = None,
        impersonate: bool = False,
    ) -> None:
        self.name = name
        self.settings = Settings()
        self.max_retries: int = max(
            1, max_retries or self.settings.MAX_RETRIES
        )
        self.timeout: int = timeout or self.settings.REQUEST_TIMEOUT
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_second or self.settings.RATE_LIMIT_RPS
        )
        if session is not None:
            self.session = session
        elif impersonate:
            self.session = curl_requests.Session(
                impersonate=self.settings.IMPERSONATE_BROWSER
            )
        else:
            self.session = curl_requests.Session()
        self.logger = logging.getLogger(f"ec_index.transport.{name}")

    def _headers(self, extra: dict[str, str] | None) -> dict[str, str]:
        """Default headers, caller overrides, then the client id."""
        return {
            **self.settings.DEFAULT_HEADERS,
            **(extra or {}),
            self.settings.CLIENT_ID_HEADER: self.settings.CLIENT_ID,
        }

    def _backoff(self, attempt: int) -> None:
        """Sleep before the next attempt."""
        delay = self.settings.BACKOFF_BASE ** attempt
        self.logger.warning(
            "[%s] Retrying in %.0fs (attempt %d/%d)",
            self.name,
            delay,
            attempt,
            self.max_retries,
        )
        time.sleep(delay)

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: int | None = None,
        **kwargs: Any,
    ) -> Any:
        """Perform one logical call, retrying transient failures."""
        merged = self._headers(headers)
        last_error: TransportError | None = None

        for attempt in range(1, self.max_retries + 1):
            self.rate_limiter.acquire()
            self.logger.debug(
                "[%s] HTTP %s %s (attempt %d)",
                self.name, method, url, attempt,
            )
            try:
                resp = self.session.request(
                    method,
                    url,
                    headers=merged,
                    timeout=timeout or self.timeout,
                    **kwargs,
                )
            except Exception as exc:
                last_error = TransportError(
                    f"{method} {url} failed: {exc}", url=url,
                )
                last_error.__cause__ = exc
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.name,
                    attempt,
                    exc,
                )
            else:
                if resp.status_code < 400:
                    self.logger.debug(
                        "[%s] HTTP %d %s",
                        self.name, resp.status_code, url,
                    )
                    return resp
                last_error = TransportError(
                    f"HTTP {resp.status_code} for {method} {url}",
                    url=url,
                    status_code=resp.status_code,
                )
                if not last_error.retryable:
                    self.logger.error(
                        "[%s] HTTP %d is not retryable: %s",
                        self.name, resp.status_code, url,
                    )
                    raise last_error
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.name,
                    resp.status_code,
                    attempt,
                )

            if attempt < self.max_retries:
                self._backoff(attempt)

        assert last_error is not None
        self.logger.error(
            "[%s] Giving up after %d attempts: %s",
            self.name,
            self.max_retries,
            last_error,
        )
        raise last_error

    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """GET ``url`` through the retry policy."""
        return self.request("GET", url, headers=headers, **kwargs)

    def post(
        self,
        url: str,
        data: Any = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """POST ``data`` (or ``json=``) to ``url`` through the retry policy."""
        return self.request(
            "POST", url, headers=headers, data=data, **kwargs
        )

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()
