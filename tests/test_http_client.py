# tests/test_http_client.py

"""Tests for the retrying Transport."""

import unittest
from unittest.mock import MagicMock, patch

from ec_index.config.settings import Settings
from ec_index.transport.http_client import Transport, TransportError


def _resp(status: int) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    return resp


class TestTransport(unittest.TestCase):
    """Retry, backoff and header behaviour."""

    def setUp(self) -> None:
        self.session = MagicMock()
        self.limiter = MagicMock()
        self.transport = Transport(
            "test",
            max_retries=3,
            timeout=7,
            session=self.session,
            rate_limiter=self.limiter,
        )

    def test_success_returns_response(self) -> None:
        """A 200 is returned on the first attempt."""
        ok = _resp(200)
        self.session.request.return_value = ok
        self.assertIs(self.transport.get("https://x.test/a"), ok)
        self.assertEqual(self.session.request.call_count, 1)
        self.assertEqual(self.limiter.acquire.call_count, 1)

    def test_retries_server_errors_with_backoff(self) -> None:
        """5xx responses are retried with 2s then 4s backoff."""
        ok = _resp(200)
        self.session.request.side_effect = [_resp(503), _resp(502), ok]
        with patch("ec_index.transport.http_client.time.sleep") as sleep:
            result = self.transport.get("https://x.test/a")
        self.assertIs(result, ok)
        self.assertEqual(self.session.request.call_count, 3)
        self.assertEqual(
            [c.args[0] for c in sleep.call_args_list], [2.0, 4.0],
        )

    def test_every_attempt_waits_on_limiter(self) -> None:
        """Retries are paced like first attempts."""
        self.session.request.side_effect = [_resp(500), _resp(200)]
        self.transport.get("https://x.test/a")
        self.assertEqual(self.limiter.acquire.call_count, 2)

    def test_client_error_raises_immediately(self) -> None:
        """A 404 is not retried."""
        self.session.request.return_value = _resp(404)
        with patch("ec_index.transport.http_client.time.sleep") as sleep:
            with self.assertRaises(TransportError) as ctx:
                self.transport.get("https://x.test/missing")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(self.session.request.call_count, 1)
        sleep.assert_not_called()

    def test_rate_limited_is_retried_then_raised(self) -> None:
        """Persistent 429s exhaust the retries and raise."""
        self.session.request.return_value = _resp(429)
        with self.assertRaises(TransportError) as ctx:
            self.transport.get("https://x.test/a")
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertEqual(self.session.request.call_count, 3)

    def test_network_error_wrapped(self) -> None:
        """Session exceptions become TransportError with the cause kept."""
        boom = ConnectionError("reset by peer")
        self.session.request.side_effect = boom
        with self.assertRaises(TransportError) as ctx:
            self.transport.get("https://x.test/a")
        self.assertIsNone(ctx.exception.status_code)
        self.assertIs(ctx.exception.__cause__, boom)
        self.assertEqual(ctx.exception.url, "https://x.test/a")

    def test_headers_merge_and_client_id(self) -> None:
        """Caller headers override defaults; the client id is always sent."""
        self.session.request.return_value = _resp(200)
        self.transport.get(
            "https://x.test/a", headers={"User-Agent": "Mozilla/5.0"},
        )
        headers = self.session.request.call_args.kwargs["headers"]
        self.assertEqual(headers["User-Agent"], "Mozilla/5.0")
        self.assertEqual(
            headers[Settings.CLIENT_ID_HEADER], Settings.CLIENT_ID,
        )
        self.assertIn("Accept-Language", headers)

    def test_default_timeout_applied(self) -> None:
        """The transport timeout is used unless a call overrides it."""
        self.session.request.return_value = _resp(200)
        self.transport.get("https://x.test/a")
        self.assertEqual(self.session.request.call_args.kwargs["timeout"], 7)
        self.transport.get("https://x.test/a", timeout=2)
        self.assertEqual(self.session.request.call_args.kwargs["timeout"], 2)

    def test_post_sends_body(self) -> None:
        """post forwards the body as ``data``."""
        self.session.request.return_value = _resp(200)
        self.transport.post("https://x.test/p", data="a=1")
        call = self.session.request.call_args
        self.assertEqual(call.args[0], "POST")
        self.assertEqual(call.kwargs["data"], "a=1")

    @patch("ec_index.transport.http_client.curl_requests.Session")
    def test_impersonating_session(self, mock_session: MagicMock) -> None:
        """Scraping transports ask curl_cffi for browser impersonation."""
        Transport("scraper", impersonate=True)
        mock_session.assert_called_once_with(
            impersonate=Settings.IMPERSONATE_BROWSER,
        )


class TestTransportErrorRetryable(unittest.TestCase):
    """Which failures are worth another attempt."""

    def test_retryable_statuses(self) -> None:
        for status, expected in (
            (None, True), (500, True), (503, True), (429, True),
            (400, False), (401, False), (403, False), (404, False),
        ):
            with self.subTest(status=status):
                err = TransportError("x", status_code=status)
                self.assertEqual(err.retryable, expected)


if __name__ == "__main__":
    unittest.main()
