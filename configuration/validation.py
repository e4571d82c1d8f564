import re
from typing import NamedTuple

from django.core.exceptions import ValidationError

RATE_LIMIT_PATTERN = re.compile(r"^(\d+)/(\d*)(s|m|h|d)$")

UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


class Rate(NamedTuple):
    requests: int
    interval: int  # seconds


def validate_rate(rate: str) -> str:
    """
    Validate that a rate string matches the expected pattern like '10/m'.

    Behavior:
        - Strip leading and trailing whitespace.
        - Require the format '<positive integer>/<period>' where the period is
          an optional positive multiplier followed by one of 's', 'm', 'h' or
          'd' (seconds, minutes, hours, days). '40/10s' means forty requests
          every ten seconds.
        - Return the cleaned string unchanged if valid.

    Raises:
        ValidationError: If the input is not a string, if the format does not
            match the required pattern, or if either number is zero.
    """
    if not isinstance(rate, str):
        raise ValidationError("Rate limit must be a string.")

    rate = rate.strip()

    match = RATE_LIMIT_PATTERN.match(rate)
    if not match:
        raise ValidationError(
            "Invalid rate limit format. Use '<number>/<s|m|h|d>' or "
            "'<number>/<number><s|m|h|d>'."
        )

    count, multiplier, _unit = match.groups()
    if int(count) <= 0:
        raise ValidationError("Rate limit count must be greater than 0.")
    if multiplier and int(multiplier) <= 0:
        raise ValidationError("Rate limit period must be greater than 0.")

    return rate


def parse_rate(rate: str) -> Rate:
    """
    Convert a rate string into the number of requests allowed per interval of
    seconds

    >>> parse_rate("40/10s")
    Rate(requests=40, interval=10)
    """
    count, multiplier, unit = RATE_LIMIT_PATTERN.match(validate_rate(rate)).groups()
    return Rate(int(count), int(multiplier or 1) * UNIT_SECONDS[unit])
