import random

from django.conf import settings


def exponential_backoff(attempt, base=None, maximum=None, jitter=True):
    """
    Seconds to wait before retry number ``attempt`` (1 for the first retry):
    ``base * 2 ** (attempt - 1)`` capped at ``maximum``. With ``jitter`` a
    random delay between half and all of that is returned instead, so workers
    which failed together do not retry together.

    ``base`` and ``maximum`` default to IMPORTER_RETRY_BACKOFF_BASE and
    IMPORTER_RETRY_BACKOFF_MAX.
    """
    if base is None:
        base = settings.IMPORTER_RETRY_BACKOFF_BASE
    if maximum is None:
        maximum = settings.IMPORTER_RETRY_BACKOFF_MAX

    delay = min(base * 2 ** max(attempt - 1, 0), maximum)
    if jitter:
        delay = random.uniform(delay / 2, delay)  # nosec
    return delay


def retry_delay(attempt, retry_after=None, backoff=exponential_backoff):
    """
    Delay before the next attempt, never shorter than a provider's
    Retry-After hint
    """
    delay = backoff(attempt)
    if retry_after:
        delay = max(delay, retry_after)
    return delay
