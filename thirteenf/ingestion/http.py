"""
HTTP helpers shared by every external API client.

Maps ``requests`` failures onto the pipeline's exception hierarchy so the
retry strategy can decide what is transient:
- connection errors and timeouts -> TransientNetworkError
- HTTP 429 -> RateLimitError (with Retry-After when sent)
- HTTP 5xx -> TransientNetworkError
- any other HTTP error -> ExternalApiError (not retried)
"""

from typing import Optional

import requests

from ..core.exceptions import ExternalApiError, RateLimitError, TransientNetworkError


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def check_response(response: requests.Response, url: str) -> requests.Response:
    """Raise the matching pipeline exception for an error response."""
    status = response.status_code

    if status == 429:
        raise RateLimitError(
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
            url=url,
        )
    if status >= 500:
        raise TransientNetworkError(f"Server error {status}", status_code=status, url=url)
    if status >= 400:
        raise ExternalApiError(f"HTTP {status}", status_code=status, url=url)
    return response


def translate_request_error(error: requests.RequestException, url: str) -> ExternalApiError:
    """Wrap a ``requests`` exception raised before a response arrived."""
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return TransientNetworkError(f"Request failed: {error}", url=url)
    return ExternalApiError(f"Request failed: {error}", url=url)


def send(
    session: requests.Session,
    method: str,
    url: str,
    **kwargs,
) -> requests.Response:
    """
    Perform one request and translate failures.

    Raises:
        TransientNetworkError, RateLimitError, ExternalApiError
    """
    try:
        response = session.request(method, url, **kwargs)
    except requests.RequestException as e:
        raise translate_request_error(e, url) from e
    return check_response(response, url)
