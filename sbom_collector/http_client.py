"""HTTP client utilities with consistent user agent and retries."""

from typing import Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from sbom_collector import __version__

USER_AGENT = f"sbom-collector/{__version__}"

# Retry policy for API calls
DEFAULT_RETRIES = 5
DEFAULT_BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


def get_default_headers(api_key: Optional[str] = None, content_type: Optional[str] = None) -> dict:
    """
    Get default HTTP headers with user agent.

    Args:
        api_key: Optional API key sent as X-Api-Key
        content_type: Optional Content-Type header value (e.g., "application/json")

    Returns:
        Dictionary of HTTP headers
    """
    headers = {"User-Agent": USER_AGENT}
    if api_key:
        headers["X-Api-Key"] = api_key
    if content_type:
        headers["Content-Type"] = content_type
    return headers


def create_session(
    retries: int = DEFAULT_RETRIES,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    status_forcelist: Sequence[int] = RETRY_STATUS_CODES,
) -> requests.Session:
    """
    Create a requests session that retries with exponential backoff.

    Args:
        retries: Total number of retries
        backoff_factor: Backoff factor between attempts
        status_forcelist: HTTP statuses that trigger a retry

    Returns:
        Configured requests.Session
    """
    retry_strategy = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=list(status_forcelist),
        allowed_methods=None,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)

    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": USER_AGENT})
    return session
