"""HTTP session helpers with bounded retries."""
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

RETRYABLE_STATUSES = (408, 429, 500, 502, 503, 504)


def build_session(
    retry_attempts: int = 3,
    backoff: float = 0.75,
    retry_rate_limited: bool = True,
    user_agent: str = None
) -> requests.Session:
    """
    Create a requests session that retries transient failures.

    Args:
        retry_attempts: Total attempts per request, including the first
        backoff: urllib3 exponential backoff factor, in seconds
        retry_rate_limited: Whether 429 responses are retried here. A
            self-hosted Nominatim handles 429 with its own fixed-delay policy.
        user_agent: Optional User-Agent header for every request

    Returns:
        Configured session
    """
    statuses = [
        status for status in RETRYABLE_STATUSES
        if retry_rate_limited or status != 429
    ]
    retries = max(0, retry_attempts - 1)
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=backoff,
        status_forcelist=statuses,
        allowed_methods=frozenset(["GET"]),
        raise_on_status=False,
        # Waits come from the backoff alone, never from Retry-After
        respect_retry_after_header=False,
    )
    adapter = HTTPAdapter(max_retries=retry)

    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    if user_agent:
        session.headers.update({"User-Agent": user_agent})
    return session
