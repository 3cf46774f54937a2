"""
Error types for Recall.

Provider errors (embedding model, vector index, LLM) are deliberately absent:
they propagate to callers as raised by the provider SDK or httpx.
"""


class RecallError(Exception):
    """Base class for errors raised by Recall itself."""
    pass


class ValidationError(RecallError, ValueError):
    """Empty or malformed input. Never retried."""
    pass


class RateLimitExceeded(RecallError):
    """Quota for a rate-limit bucket is exhausted for the current window."""

    def __init__(self, bucket: str, limit: int, window_seconds: int):
        self.bucket = bucket
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__(
            f"Rate limit exceeded for '{bucket}' "
            f"({limit} requests per {window_seconds}s). Please try again later."
        )


class SynthesisError(RecallError):
    """The generative model failed on every attempt."""

    def __init__(self, attempts: int, last_error: Exception = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to generate response after {attempts} attempts")
