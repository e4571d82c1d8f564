import uuid
from datetime import timedelta
from email.utils import format_datetime
from unittest import mock

import requests
from django.core.cache import caches
from django.test import TestCase, override_settings
from django.utils import timezone

from configuration.models import Configuration
from configuration.validation import Rate
from filmgraph.exceptions import RateLimitExceededError
from importer.backoff import exponential_backoff, retry_delay
from importer.exceptions import PermanentProviderError, TransientProviderError
from importer.providers.http import (
    RateLimitedClient,
    TokenBucket,
    parse_retry_after,
    provider_rate,
)


def no_backoff(attempt):
    return 0


def make_response(status_code=200, json_data=None, headers=None, text=""):
    response = mock.MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.url = "https://api.example.com/movie/1"
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now
        self.slept = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.slept.append(seconds)
        self.now += seconds


class TokenBucketTests(TestCase):
    def make_bucket(self, capacity=2, interval=10, **kwargs):
        self.clock = FakeClock()
        return TokenBucket(
            f"test-{uuid.uuid4()}",
            capacity,
            interval,
            clock=self.clock,
            sleep=self.clock.sleep,
            **kwargs,
        )

    def test_rejects_empty_buckets(self):
        with self.assertRaises(ValueError):
            TokenBucket("bad", 0, 10)
        with self.assertRaises(ValueError):
            TokenBucket("bad", 1, 0)

    def test_tokens_run_out_within_a_window(self):
        bucket = self.make_bucket()
        self.assertEqual(bucket.try_acquire(), 0)
        self.assertEqual(bucket.try_acquire(), 0)
        self.assertEqual(bucket.tokens_remaining(), 0)
        # The next window starts at 1010
        self.assertEqual(bucket.try_acquire(), 10)

    def test_acquire_waits_for_the_next_window(self):
        bucket = self.make_bucket(capacity=1)
        self.assertEqual(bucket.acquire(), 0)
        self.assertEqual(bucket.acquire(), 10)
        self.assertEqual(self.clock.slept, [10])

    def test_acquire_gives_up_after_max_wait(self):
        bucket = self.make_bucket(capacity=1, max_wait=5)
        bucket.acquire()
        with self.assertRaises(RateLimitExceededError) as ctx:
            bucket.acquire()
        self.assertEqual(ctx.exception.retry_after, 10)
        self.assertEqual(self.clock.slept, [])

    def test_buckets_with_the_same_name_share_tokens(self):
        bucket = self.make_bucket(capacity=1)
        other = TokenBucket(
            bucket.name, 1, 10, clock=self.clock, sleep=self.clock.sleep
        )
        self.assertEqual(bucket.try_acquire(), 0)
        self.assertGreater(other.try_acquire(), 0)

    def test_cooldown_blocks_all_tokens(self):
        bucket = self.make_bucket(capacity=100)
        with self.assertLogs("importer.providers.http", level="WARNING"):
            bucket.cooldown(30)
        self.assertEqual(bucket.tokens_remaining(), 0)
        self.assertEqual(bucket.try_acquire(), 30)

        # A shorter cooldown never shortens the current one
        bucket.cooldown(5)
        self.assertEqual(bucket.try_acquire(), 30)

        self.clock.now += 31
        self.assertEqual(bucket.try_acquire(), 0)


class ProviderRateTests(TestCase):
    def setUp(self):
        config_cache = caches["configuration_cache"]
        config_cache.clear()
        self.addCleanup(config_cache.clear)

    def test_rate_from_settings(self):
        self.assertEqual(provider_rate("tmdb"), Rate(40, 10))
        self.assertEqual(provider_rate("imdb"), Rate(1, 2))

    def test_rate_from_configuration(self):
        Configuration.objects.create(
            key="omdb_rate_limit",
            value="5/m",
            data_type=Configuration.DataType.RATE,
        )
        self.assertEqual(provider_rate("omdb"), Rate(5, 60))

    def test_invalid_configuration_is_ignored(self):
        Configuration.objects.create(
            key="omdb_rate_limit",
            value="lots",
            data_type=Configuration.DataType.RATE,
        )
        with self.assertLogs("importer.providers.http", level="WARNING"):
            self.assertEqual(provider_rate("omdb"), Rate(1, 1))

    def test_bucket_for_provider(self):
        bucket = TokenBucket.for_provider("tmdb")
        self.assertEqual((bucket.capacity, bucket.interval), (40, 10))
        self.assertEqual(bucket.max_wait, 60)


class ParseRetryAfterTests(TestCase):
    def test_seconds(self):
        self.assertEqual(parse_retry_after("120"), 120)
        self.assertEqual(parse_retry_after(" 3 "), 3)

    def test_http_date(self):
        retry_at = timezone.now() + timedelta(seconds=60)
        seconds = parse_retry_after(format_datetime(retry_at, usegmt=True))
        self.assertTrue(58 <= seconds <= 60, seconds)

    def test_past_date_is_zero(self):
        retry_at = timezone.now() - timedelta(hours=1)
        self.assertEqual(parse_retry_after(format_datetime(retry_at, usegmt=True)), 0)

    def test_unreadable_values(self):
        self.assertIsNone(parse_retry_after(None))
        self.assertIsNone(parse_retry_after(""))
        self.assertIsNone(parse_retry_after("soon"))


class BackoffTests(TestCase):
    def test_exponential_backoff(self):
        delays = [
            exponential_backoff(attempt, base=2, maximum=30, jitter=False)
            for attempt in range(1, 6)
        ]
        self.assertEqual(delays, [2, 4, 8, 16, 30])

    def test_jitter_stays_within_half_of_the_delay(self):
        for _ in range(20):
            delay = exponential_backoff(3, base=2, maximum=30)
            self.assertTrue(4 <= delay <= 8, delay)

    @override_settings(IMPORTER_RETRY_BACKOFF_BASE=1, IMPORTER_RETRY_BACKOFF_MAX=5)
    def test_defaults_come_from_settings(self):
        self.assertEqual(exponential_backoff(10, jitter=False), 5)

    def test_retry_after_is_a_floor(self):
        self.assertEqual(retry_delay(1, None, no_backoff), 0)
        self.assertEqual(retry_delay(1, 45, no_backoff), 45)
        self.assertEqual(retry_delay(1, 2, lambda attempt: 10), 10)


class RateLimitedClientTests(TestCase):
    def setUp(self):
        self.session = mock.MagicMock()
        self.bucket = mock.MagicMock(interval=10)
        self.bucket.acquire.return_value = 0
        self.sleep = mock.Mock()

    def make_client(self, **kwargs):
        kwargs.setdefault("max_retries", 0)
        return RateLimitedClient(
            "tmdb",
            base_url="https://api.example.com/3/",
            api_key="secret",
            session=self.session,
            bucket=self.bucket,
            backoff=no_backoff,
            sleep=self.sleep,
            **kwargs,
        )

    def test_configuration(self):
        client = self.make_client()
        self.assertEqual(client.base_url, "https://api.example.com/3")
        self.assertEqual(
            client.build_url("/movie/1"), "https://api.example.com/3/movie/1"
        )
        self.assertEqual(client.timeout, 30)
        self.assertTrue(
            self.session.headers.__setitem__.call_args.args[1].startswith("filmgraph/")
        )

    def test_success_returns_response(self):
        self.session.get.return_value = make_response(200, {"id": 1})
        client = self.make_client()

        self.assertEqual(client.get_json("movie/1", {"language": "en"}), {"id": 1})

        self.bucket.acquire.assert_called_once_with()
        self.session.get.assert_called_once_with(
            "https://api.example.com/3/movie/1",
            params={"language": "en"},
            timeout=30,
        )

    def test_rate_limited_response_cools_the_bucket_down(self):
        self.session.get.return_value = make_response(429, headers={"Retry-After": "7"})
        client = self.make_client()

        with self.assertRaises(TransientProviderError) as ctx:
            client.request("movie/1")

        self.assertEqual(ctx.exception.status_code, 429)
        self.assertEqual(ctx.exception.retry_after, 7)
        self.bucket.cooldown.assert_called_once_with(20)

    def test_long_retry_after_wins_over_the_cooldown_factor(self):
        self.session.get.return_value = make_response(
            429, headers={"Retry-After": "90"}
        )
        with self.assertRaises(TransientProviderError):
            self.make_client().request("movie/1")
        self.bucket.cooldown.assert_called_once_with(90)

    def test_server_errors_are_transient(self):
        self.session.get.return_value = make_response(502)
        with self.assertRaises(TransientProviderError) as ctx:
            self.make_client().request("movie/1")
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertEqual(ctx.exception.provider, "tmdb")

    def test_client_errors_are_permanent(self):
        for status_code in (400, 401, 404):
            self.session.get.return_value = make_response(status_code)
            with self.assertRaises(PermanentProviderError) as ctx:
                self.make_client(max_retries=3).request("movie/1")
            self.assertEqual(ctx.exception.status_code, status_code)
        self.sleep.assert_not_called()

    def test_network_errors_are_transient(self):
        for error in (requests.ConnectionError("reset"), requests.Timeout("slow")):
            self.session.get.side_effect = error
            with self.assertRaises(TransientProviderError) as ctx:
                self.make_client().request("movie/1")
            self.assertIs(ctx.exception.__cause__, error)

    def test_malformed_requests_are_permanent(self):
        self.session.get.side_effect = requests.exceptions.InvalidURL("bad url")
        with self.assertRaises(PermanentProviderError):
            self.make_client().request("movie/1")

    def test_exhausted_token_wait_is_transient(self):
        self.bucket.acquire.side_effect = RateLimitExceededError("busy", retry_after=4)
        with self.assertRaises(TransientProviderError) as ctx:
            self.make_client().request("movie/1")
        self.assertEqual(ctx.exception.retry_after, 4)
        self.session.get.assert_not_called()

    def test_transient_errors_are_retried(self):
        self.session.get.side_effect = [
            make_response(503),
            make_response(200, {"id": 1}),
        ]
        client = self.make_client(max_retries=2)

        self.assertEqual(client.get_json("movie/1"), {"id": 1})
        self.assertEqual(self.session.get.call_count, 2)
        self.sleep.assert_called_once_with(0)

    def test_retries_are_bounded(self):
        self.session.get.return_value = make_response(503)
        client = self.make_client(max_retries=2)

        with self.assertRaises(TransientProviderError):
            client.request("movie/1")
        self.assertEqual(self.session.get.call_count, 3)

    def test_invalid_json_is_transient(self):
        self.session.get.return_value = make_response(200, ValueError("not json"))
        with self.assertRaises(TransientProviderError):
            self.make_client().get_json("movie/1")

    def test_get_text(self):
        self.session.get.return_value = make_response(200, text="<html></html>")
        self.assertEqual(self.make_client().get_text("list/ls1/"), "<html></html>")
