import unittest

import requests

from fakes import FakeResponse, FakeSession, SleepRecorder
from goghflow.crawl.client import (
    ExhaustedRetries,
    MetApi,
    RateLimitedClient,
    RequestFailed,
    backoff_delay,
    no_jitter,
    uniform_jitter,
)

URL = "https://example.test/objects/1"


def make_client(session: FakeSession, sleep: SleepRecorder) -> RateLimitedClient:
    return RateLimitedClient(
        session=session,
        user_agent="goghflow-tests/1.0",
        backoff_base=2.0,
        backoff_cap=180.0,
        jitter=no_jitter,
        sleep=sleep,
    )


class TestRateLimitedClient(unittest.TestCase):

    def test_throttled_then_ok_returns_same_payload(self) -> None:
        payload = {"objectID": 1, "title": "Wheat Field with Cypresses"}
        session = FakeSession({URL: [FakeResponse(403, {}), FakeResponse(200, payload)]})
        sleep = SleepRecorder()

        result = make_client(session, sleep).fetch_json(URL, max_retries=5)

        self.assertEqual(result, payload)
        self.assertEqual(len(session.calls), 2)
        self.assertEqual(sleep.delays, [2.0])

    def test_exhausted_after_max_retries_plus_one_attempts(self) -> None:
        session = FakeSession({URL: [FakeResponse(429, {})]})
        sleep = SleepRecorder()

        with self.assertRaises(ExhaustedRetries) as ctx:
            make_client(session, sleep).fetch_json(URL, max_retries=3)

        self.assertEqual(len(session.calls), 4)
        self.assertEqual(ctx.exception.attempts, 4)
        self.assertEqual(sleep.delays, [2.0, 4.0, 8.0])

    def test_other_failure_status_is_not_retried(self) -> None:
        session = FakeSession({URL: [FakeResponse(500, {})]})
        sleep = SleepRecorder()

        with self.assertRaises(RequestFailed) as ctx:
            make_client(session, sleep).fetch_json(URL, max_retries=5)

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(sleep.delays, [])

    def test_invalid_json_body_fails(self) -> None:
        session = FakeSession({URL: [FakeResponse.invalid_json()]})
        with self.assertRaises(RequestFailed):
            make_client(session, SleepRecorder()).fetch_json(URL, max_retries=1)

    def test_connection_errors_are_retried(self) -> None:
        session = FakeSession(
            {URL: [requests.ConnectionError("reset"), FakeResponse(200, {"ok": True})]}
        )
        result = make_client(session, SleepRecorder()).fetch_json(URL, max_retries=2)
        self.assertEqual(result, {"ok": True})

    def test_sends_identifier_and_accept_headers(self) -> None:
        session = FakeSession({URL: [FakeResponse(200, {})]})
        make_client(session, SleepRecorder()).fetch_json(URL, max_retries=0)
        headers = session.calls[0]["headers"]
        self.assertEqual(headers["User-Agent"], "goghflow-tests/1.0")
        self.assertEqual(headers["Accept"], "application/json")

    def test_fetch_bytes_returns_raw_content(self) -> None:
        session = FakeSession({URL: [FakeResponse(200, None, content=b"\x89PNG")]})
        data = make_client(session, SleepRecorder()).fetch_bytes(URL, max_retries=0)
        self.assertEqual(data, b"\x89PNG")


class TestBackoff(unittest.TestCase):

    def test_delay_grows_until_cap(self) -> None:
        delays = [backoff_delay(attempt, 2.0, 180.0) for attempt in range(12)]
        capped_from = next(i for i, value in enumerate(delays) if value == 180.0)
        for earlier, later in zip(delays[:capped_from], delays[1:capped_from + 1]):
            self.assertLess(earlier, later)
        self.assertTrue(all(value == 180.0 for value in delays[capped_from:]))

    def test_delay_with_jitter_stays_bounded(self) -> None:
        jitter = uniform_jitter(1.0)
        for attempt in range(20):
            total = backoff_delay(attempt, 2.0, 180.0) + jitter()
            self.assertLessEqual(total, 181.0)
            self.assertGreaterEqual(total, min(180.0, 2.0 * 2**attempt))


class TestMetApi(unittest.TestCase):
    BASE = "https://example.test"

    def test_search_sends_filters_and_returns_ids(self) -> None:
        session = FakeSession({f"{self.BASE}/search": [FakeResponse(200, {"total": 2, "objectIDs": [5, 7]})]})
        api = MetApi(make_client(session, SleepRecorder()), self.BASE)

        ids = api.search("Vincent van Gogh", max_retries=0)

        self.assertEqual(ids, [5, 7])
        self.assertEqual(
            session.calls[0]["params"],
            {"hasImages": "true", "artistOrCulture": "true", "q": "Vincent van Gogh"},
        )

    def test_search_with_null_ids_is_empty(self) -> None:
        session = FakeSession({f"{self.BASE}/search": [FakeResponse(200, {"total": 0, "objectIDs": None})]})
        api = MetApi(make_client(session, SleepRecorder()), self.BASE)
        self.assertEqual(api.search("nobody", max_retries=0), [])

    def test_search_failure_propagates(self) -> None:
        session = FakeSession({f"{self.BASE}/search": [FakeResponse(429, {})]})
        api = MetApi(make_client(session, SleepRecorder()), self.BASE)
        with self.assertRaises(ExhaustedRetries):
            api.search("Claude Monet", max_retries=1)

    def test_object_failures_degrade_to_none(self) -> None:
        session = FakeSession({f"{self.BASE}/objects/2": [FakeResponse(429, {})]})
        api = MetApi(make_client(session, SleepRecorder()), self.BASE)

        self.assertIsNone(api.get_object(1, max_retries=2))
        self.assertIsNone(api.get_object(2, max_retries=2))
        self.assertEqual(session.urls().count(f"{self.BASE}/objects/2"), 3)


if __name__ == "__main__":
    unittest.main()
