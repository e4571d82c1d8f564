class ProviderError(Exception):
    """
    Base class for failures talking to an external provider.

    Raw transport exceptions never leave the provider clients; they are
    converted into one of the subclasses below so callers only have to decide
    between retrying and giving up.
    """

    def __init__(self, message, *, provider=None, status_code=None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """
    The request may succeed if repeated later: rate limiting, server errors,
    timeouts and connection failures. ``retry_after`` carries the provider's
    hint in seconds when it sent one.
    """

    def __init__(self, message, *, retry_after=None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class PermanentProviderError(ProviderError):
    """
    The request will never succeed as made, e.g. a missing record or a
    rejected API key. Jobs failing this way are not retried.
    """


class CursorAdvanceConflict(Exception):
    """
    A page cursor was asked to advance past a page which was never recorded
    as processed. This means pages would be skipped, so the job stops.
    """

    def __init__(self, scope, page, stored_page):
        super().__init__(
            f"Cannot advance {scope} to page {page}: last processed page is "
            f"{stored_page}"
        )
        self.scope = scope
        self.page = page
        self.stored_page = stored_page


class ExhaustedRetries(Exception):
    """
    Raised when an import job fails on its final attempt and is discarded.
    The underlying error is chained as ``__cause__``.
    """

    def __init__(self, import_job, attempts):
        super().__init__(
            f"{import_job} was discarded after {attempts} attempt(s)"
        )
        self.import_job = import_job
        self.attempts = attempts


class ImportAlreadyRunning(Exception):
    """An import was started for a scope which already has a running import"""

    def __init__(self, scope):
        super().__init__(f"An import for {scope} is already running")
        self.scope = scope
