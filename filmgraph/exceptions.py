class RateLimitExceededError(Exception):
    """
    Raised when a shared rate limit cannot grant a token within the caller's
    maximum wait
    """

    def __init__(self, message, retry_after=None):
        super().__init__(message)
        self.retry_after = retry_after
