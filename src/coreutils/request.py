import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import (
    HTTPStatusError,
    InvalidResponseError,
    PipelineCancelled,
    RetryExhaustedError,
    TransportError,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUSES = frozenset({429})
SERVER_ERROR_STATUSES = frozenset({500, 503})

# Connection-level retries only; status retries are handled by fetch_with_retry
CONNECT_RETRY_STRATEGY = Retry(
    total=3,
    connect=3,
    read=0,
    status=0,
    backoff_factor=1,
    raise_on_status=False,
)


def new_session(user_agent: str = "patient-risk-pipeline/1.0") -> requests.Session:
    """Create a new requests session with a connection retry strategy"""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=CONNECT_RETRY_STRATEGY)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})

    return session


class CancellationToken:
    """Cancellation signal honoured at every wait and before every request.

    Waiting uses ``threading.Event.wait`` so only the calling thread is
    suspended and a cancel() from a signal handler wakes it immediately.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled()

    def sleep(self, seconds: float) -> None:
        """Wait up to ``seconds``; raises PipelineCancelled if cancelled meanwhile."""
        if self._event.wait(timeout=max(seconds, 0)):
            raise PipelineCancelled()


@dataclass(frozen=True)
class RetryPolicy:
    """Cooldowns and ceilings for status-code driven retries."""

    rate_limit_cooldown: float = 15.0
    server_error_cooldown: float = 1.0
    backoff_factor: float = 2.0
    max_rate_limit_cooldown: float = 60.0
    max_server_error_cooldown: float = 8.0
    max_attempts: int = 8
    max_total_wait: float = 300.0
    rate_limit_statuses: FrozenSet[int] = RATE_LIMIT_STATUSES
    server_error_statuses: FrozenSet[int] = SERVER_ERROR_STATUSES

    def is_retryable(self, status_code: int) -> bool:
        return (
            status_code in self.rate_limit_statuses
            or status_code in self.server_error_statuses
        )

    def cooldown_for(self, status_code: int, previous_retries: int) -> float:
        """Delay before the next attempt.

        The first retry of a class waits exactly the base cooldown; each further
        retry of the same class multiplies it by ``backoff_factor`` up to the cap.
        """
        if status_code in self.rate_limit_statuses:
            base, cap = self.rate_limit_cooldown, self.max_rate_limit_cooldown
        else:
            base, cap = self.server_error_cooldown, self.max_server_error_cooldown
        return min(base * self.backoff_factor**previous_retries, max(cap, base))


@dataclass
class FetchStats:
    """Counters for every request made through fetch_with_retry"""

    requests: int = 0
    attempts: int = 0
    rate_limited_retries: int = 0
    server_error_retries: int = 0
    total_wait_seconds: float = 0.0
    statuses: Dict[int, int] = field(default_factory=dict)

    def record_status(self, status_code: int) -> None:
        self.statuses[status_code] = self.statuses.get(status_code, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requests": self.requests,
            "attempts": self.attempts,
            "rate_limited_retries": self.rate_limited_retries,
            "server_error_retries": self.server_error_retries,
            "total_wait_seconds": round(self.total_wait_seconds, 3),
            "statuses": dict(self.statuses),
        }


def fetch_with_retry(
    session: requests.Session,
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Any] = None,
    policy: Optional[RetryPolicy] = None,
    stats: Optional[FetchStats] = None,
    cancel_token: Optional[CancellationToken] = None,
    timeout: float = 30,
    on_retry: Optional[Callable[[int, int, float], None]] = None,
) -> Any:
    """Perform one logical HTTP request, retrying on rate limits and server errors.

    429 waits the rate-limit cooldown and 500/503 the server-error cooldown
    before the identical request is issued again. Any other non-success status
    fails immediately.

    Args:
        session: HTTP session to use
        method: HTTP method ("GET", "POST", ...)
        url: URL to request
        headers: Request headers, sent unchanged on every attempt
        params: Optional query parameters
        json_body: Optional JSON body
        policy: Retry cooldowns and ceilings
        stats: Counters updated in place
        cancel_token: Checked before each attempt and used for every wait
        timeout: Per-attempt timeout in seconds
        on_retry: Called with (attempt, status_code, delay) before each wait

    Returns:
        Parsed JSON response

    Raises:
        HTTPStatusError: On a non-retryable, non-success status
        RetryExhaustedError: When max_attempts or max_total_wait is reached
        InvalidResponseError: On a success response that is not JSON
        TransportError: On connection or timeout failures
        PipelineCancelled: When the token is cancelled
    """
    policy = policy or RetryPolicy()
    stats = stats if stats is not None else FetchStats()
    cancel_token = cancel_token or CancellationToken()

    stats.requests += 1
    retries_by_class = {"rate_limit": 0, "server_error": 0}
    waited = 0.0
    last_status = None
    attempt = 0

    while attempt < policy.max_attempts:
        cancel_token.raise_if_cancelled()
        attempt += 1
        stats.attempts += 1

        try:
            response = session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_body,
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise TransportError(url, str(e)) from e

        status = response.status_code
        last_status = status
        stats.record_status(status)

        if policy.is_retryable(status):
            if attempt >= policy.max_attempts:
                break

            if status in policy.rate_limit_statuses:
                retry_class = "rate_limit"
                label = "Rate limit"
            else:
                retry_class = "server_error"
                label = "Retryable error"

            delay = policy.cooldown_for(status, retries_by_class[retry_class])
            if waited + delay > policy.max_total_wait:
                logger.error(
                    f"Retry budget of {policy.max_total_wait}s exhausted for {method} {url}"
                )
                break

            retries_by_class[retry_class] += 1
            if retry_class == "rate_limit":
                stats.rate_limited_retries += 1
            else:
                stats.server_error_retries += 1

            logger.warning(
                f"{label} ({status}) on attempt {attempt} for {method} {url}. "
                f"Waiting {delay:g}s..."
            )
            if on_retry is not None:
                on_retry(attempt, status, delay)

            cancel_token.sleep(delay)
            waited += delay
            stats.total_wait_seconds += delay
            continue

        if not 200 <= status < 300:
            raise HTTPStatusError(status, url)

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError(url, str(e)) from e

    raise RetryExhaustedError(url, attempt, last_status)
