"""
Shared HTTP plumbing for the external providers.

Every provider request goes through a RateLimitedClient, which takes a token
from the provider's TokenBucket before sending anything and converts the
outcome into either a response or one of the importer's provider errors.
"""

import math
import time
from email.utils import parsedate_to_datetime
from logging import getLogger

import requests
from django.conf import settings
from django.core.cache import caches
from django.core.exceptions import ValidationError
from django.utils import timezone

from configuration.utils import configuration_value_or_default
from configuration.validation import parse_rate
from filmgraph import get_version
from filmgraph.exceptions import RateLimitExceededError
from importer.backoff import exponential_backoff, retry_delay
from importer.exceptions import PermanentProviderError, TransientProviderError
from prometheus_metrics.models import (
    provider_request_latency,
    provider_requests_total,
    rate_limit_waits_total,
)

logger = getLogger(__name__)


def provider_rate(provider):
    """
    The request rate for ``provider``: a ``<provider>_rate_limit``
    configuration value when one exists and is valid, otherwise the rate in
    IMPORTER_PROVIDERS
    """
    try:
        override = configuration_value_or_default(f"{provider}_rate_limit", None)
    except ValidationError:
        override = None
        logger.warning(
            "Ignoring invalid %s_rate_limit configuration value", provider
        )
    if override:
        return parse_rate(override)
    return parse_rate(settings.IMPORTER_PROVIDERS[provider]["rate"])


class TokenBucket:
    """
    A request quota shared by every process using the same cache.

    The bucket holds ``capacity`` tokens and is refilled completely every
    ``interval`` seconds. The tokens taken in the current refill window are
    counted in a cache key named after the window, using the cache's atomic
    ``add`` and ``incr`` so that concurrent workers never lose a count. A
    caller which finds the bucket empty waits for the next window.

    After the provider answers 429 the bucket is put into a cooldown, during
    which no tokens are handed out at all.

    ``clock`` must return wall-clock time since all processes have to agree on
    window boundaries.
    """

    def __init__(
        self,
        name,
        capacity,
        interval,
        *,
        max_wait=60,
        cache_alias="default",
        clock=time.time,
        sleep=time.sleep,
    ):
        if capacity < 1 or interval <= 0:
            raise ValueError("A token bucket needs a positive capacity and interval")
        self.name = name
        self.capacity = capacity
        self.interval = interval
        self.max_wait = max_wait
        self.cache = caches[cache_alias]
        self.clock = clock
        self.sleep = sleep

    def __repr__(self):
        return f"TokenBucket({self.name!r}, {self.capacity}/{self.interval}s)"

    @classmethod
    def for_provider(cls, provider, **kwargs):
        rate = provider_rate(provider)
        kwargs.setdefault(
            "max_wait", settings.IMPORTER_PROVIDERS[provider].get("max_wait", 60)
        )
        return cls(provider, rate.requests, rate.interval, **kwargs)

    @property
    def cooldown_key(self):
        return f"ratelimit:{self.name}:cooldown"

    def window_key(self, window):
        return f"ratelimit:{self.name}:{self.capacity}:{self.interval}:{window}"

    def _count(self, key):
        timeout = math.ceil(self.interval) + 1
        # The key can expire between add and incr, in which case incr raises
        # ValueError and we start a new count
        for _ in range(3):
            self.cache.add(key, 0, timeout)
            try:
                return self.cache.incr(key)
            except ValueError:
                continue
        return self.capacity + 1

    def try_acquire(self):
        """
        Take a token if one is available.

        Returns 0 when a token was taken, otherwise the number of seconds
        until one may be.
        """
        now = self.clock()

        cooldown_until = self.cache.get(self.cooldown_key)
        if cooldown_until and cooldown_until > now:
            return cooldown_until - now

        window = int(now // self.interval)
        if self._count(self.window_key(window)) <= self.capacity:
            return 0
        return max((window + 1) * self.interval - now, 0.001)

    def acquire(self):
        """
        Block until a token is taken, and return the number of seconds spent
        waiting.

        Raises:
            RateLimitExceededError: If getting a token would take longer than
                ``max_wait`` seconds in total.
        """
        waited = 0.0
        while True:
            wait = self.try_acquire()
            if not wait:
                return waited
            if waited + wait > self.max_wait:
                raise RateLimitExceededError(
                    f"No {self.name} token available within {self.max_wait}s",
                    retry_after=wait,
                )
            rate_limit_waits_total.labels(self.name).inc()
            logger.debug("Waiting %.2fs for a %s token", wait, self.name)
            self.sleep(wait)
            waited += wait

    def cooldown(self, seconds):
        """Hand out no tokens for the next ``seconds`` seconds"""
        until = self.clock() + seconds
        current = self.cache.get(self.cooldown_key)
        if current and current >= until:
            return
        self.cache.set(self.cooldown_key, until, timeout=math.ceil(seconds) + 1)
        logger.warning("%s rate limit cooling down for %ss", self.name, seconds)

    def tokens_remaining(self):
        now = self.clock()
        cooldown_until = self.cache.get(self.cooldown_key)
        if cooldown_until and cooldown_until > now:
            return 0
        used = self.cache.get(self.window_key(int(now // self.interval)), 0)
        return max(self.capacity - used, 0)


def parse_retry_after(value):
    """
    Seconds from a Retry-After header, which is either a number of seconds
    or an HTTP date. Returns None when the header is missing or unreadable.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(math.ceil((retry_at - timezone.now()).total_seconds()), 0)


class RateLimitedClient:
    """
    HTTP client for one provider which shares that provider's rate limit with
    every other worker and classifies failures.

    Responses are handled as:

    * 2xx: returned
    * 429: the bucket cools down, then TransientProviderError carrying the
      Retry-After hint
    * 5xx, timeouts and connection errors: TransientProviderError
    * any other status: PermanentProviderError

    Transient errors are retried here up to ``max_retries`` times with
    ``backoff`` between attempts before being raised to the caller.
    """

    provider = None

    def __init__(
        self,
        provider=None,
        *,
        base_url=None,
        api_key=None,
        session=None,
        bucket=None,
        timeout=None,
        max_retries=None,
        backoff=exponential_backoff,
        sleep=time.sleep,
    ):
        self.provider = provider or self.provider
        config = settings.IMPORTER_PROVIDERS[self.provider]

        self.base_url = (base_url or config["base_url"]).rstrip("/")
        self.api_key = config.get("api_key", "") if api_key is None else api_key
        self.timeout = config.get("timeout", 30) if timeout is None else timeout
        self.max_retries = (
            config.get("max_retries", 3) if max_retries is None else max_retries
        )
        self.backoff = backoff
        self.sleep = sleep

        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = (
            f"filmgraph/{get_version()} (+catalog importer)"
        )
        self.bucket = bucket or TokenBucket.for_provider(self.provider, sleep=sleep)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.base_url})"

    def default_params(self):
        return {}

    def build_url(self, endpoint):
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def request(self, endpoint, params=None):
        url = self.build_url(endpoint)
        query = {**self.default_params(), **(params or {})}

        attempt = 0
        while True:
            attempt += 1
            try:
                return self._send(url, query)
            except TransientProviderError as exc:
                if attempt > self.max_retries:
                    raise
                delay = retry_delay(attempt, exc.retry_after, self.backoff)
                logger.info(
                    "Retrying %s request to %s in %.1fs (attempt %s): %s",
                    self.provider,
                    url,
                    delay,
                    attempt,
                    exc,
                )
                self.sleep(delay)

    def _send(self, url, params):
        try:
            self.bucket.acquire()
        except RateLimitExceededError as exc:
            provider_requests_total.labels(self.provider, "throttled").inc()
            raise TransientProviderError(
                str(exc), provider=self.provider, retry_after=exc.retry_after
            ) from exc

        started = time.monotonic()
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            provider_requests_total.labels(self.provider, "network_error").inc()
            raise TransientProviderError(
                f"{self.provider} request to {url} failed: {exc}",
                provider=self.provider,
            ) from exc
        except requests.RequestException as exc:
            provider_requests_total.labels(self.provider, "request_error").inc()
            raise PermanentProviderError(
                f"{self.provider} request to {url} could not be made: {exc}",
                provider=self.provider,
            ) from exc
        finally:
            provider_request_latency.labels(self.provider).observe(
                time.monotonic() - started
            )

        return self.classify(response)

    def classify(self, response):
        status_code = response.status_code

        if 200 <= status_code < 300:
            provider_requests_total.labels(self.provider, "ok").inc()
            return response

        message = f"{self.provider} returned HTTP {status_code} for {response.url}"

        if status_code == 429:
            provider_requests_total.labels(self.provider, "rate_limited").inc()
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            self.bucket.cooldown(
                max(
                    retry_after or 0,
                    self.bucket.interval * settings.IMPORTER_RATE_LIMIT_COOLDOWN_FACTOR,
                )
            )
            raise TransientProviderError(
                message,
                provider=self.provider,
                status_code=status_code,
                retry_after=retry_after,
            )

        if status_code >= 500:
            provider_requests_total.labels(self.provider, "server_error").inc()
            raise TransientProviderError(
                message, provider=self.provider, status_code=status_code
            )

        provider_requests_total.labels(self.provider, "client_error").inc()
        raise PermanentProviderError(
            message, provider=self.provider, status_code=status_code
        )

    def get_json(self, endpoint, params=None):
        response = self.request(endpoint, params)
        try:
            return response.json()
        except ValueError as exc:
            # A truncated or HTML error body from an overloaded upstream
            raise TransientProviderError(
                f"{self.provider} returned invalid JSON for {endpoint}",
                provider=self.provider,
                status_code=response.status_code,
            ) from exc

    def get_text(self, endpoint, params=None):
        return self.request(endpoint, params).text
