import logging
from typing import Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class SmartFiError(Exception):
    """Base exception for the SmartFi data layer."""
    pass


class NetworkError(SmartFiError):
    """Transport failure (DNS, connect, reset) before a response arrived."""
    pass


class FetchTimeoutError(SmartFiError):
    """The bounded request wait was exceeded."""
    pass


class LoginRequiredError(SmartFiError):
    """The remote API answered with a login redirect instead of data."""

    def __init__(self, login_url: str):
        super().__init__("Please complete login in the opened window and try again")
        self.login_url = login_url


class ApiError(SmartFiError):
    """Server-reported error envelope or unexpected HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AnalysisServiceError(SmartFiError):
    """The generative AI endpoint could not produce an answer."""
    pass


class AnalysisRateLimitError(AnalysisServiceError):
    pass


def handle_rate_limit(retry_state):
    logger.warning(f"Rate limited. Retrying... Attempt {retry_state.attempt_number}")


def analysis_retry(max_attempts: int = 3, min_wait: float = 1, max_wait: float = 20) -> AsyncRetrying:
    """
    Retry policy for AI calls. Only rate limits (HTTP 429) are retried;
    every other failure goes straight to the fallback narrative.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(max_attempts, 1)),
        wait=wait_exponential(multiplier=2, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(AnalysisRateLimitError),
        after=handle_rate_limit,
        reraise=True,
    )
