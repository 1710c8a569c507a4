"""
Pipeline Configuration

All runtime settings come from the environment (and a local .env file).
The API key is a secret: it is required, never defaulted and never shown
in the repr.
"""

from dataclasses import dataclass, field

from .env import env_bool, env_float, env_get, env_int
from .errors import ConfigurationError
from .request import RetryPolicy

DEFAULT_BASE_URL = "https://assessment.ksensetech.com/api"
PAGE_SIZE = 20


@dataclass(frozen=True)
class PipelineConfig:
    api_key: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    max_pages: int = 3  # used until the API reports its own page count
    page_limit: int = 50  # safety bound on pages requested
    request_timeout: float = 30
    pacing_delay: float = 1.0
    empty_page_retries: int = 3
    empty_page_delay: float = 1.0
    abort_on_empty_page: bool = False
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    submit_max_attempts: int = 1
    output_dir: str = "output"
    log_dir: str = "logs"

    def __post_init__(self):
        if not self.api_key:
            raise ConfigurationError("PATIENTS_API_KEY is not set", key="PATIENTS_API_KEY")
        for name in ("max_pages", "page_limit", "submit_max_attempts"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1", key=name)
        if self.empty_page_retries < 0:
            raise ConfigurationError(
                "empty_page_retries must not be negative", key="empty_page_retries"
            )

    @property
    def auth_headers(self) -> dict:
        return {"x-api-key": self.api_key}

    @property
    def submit_policy(self) -> RetryPolicy:
        """Retry policy for the submission call (no retries by default)."""
        policy = self.retry_policy
        return RetryPolicy(
            rate_limit_cooldown=policy.rate_limit_cooldown,
            server_error_cooldown=policy.server_error_cooldown,
            backoff_factor=policy.backoff_factor,
            max_rate_limit_cooldown=policy.max_rate_limit_cooldown,
            max_server_error_cooldown=policy.max_server_error_cooldown,
            max_attempts=self.submit_max_attempts,
            max_total_wait=policy.max_total_wait,
        )

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build the configuration from environment variables."""
        api_key = env_get("PATIENTS_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "PATIENTS_API_KEY environment variable is not set",
                key="PATIENTS_API_KEY",
            )

        retry_policy = RetryPolicy(
            max_attempts=env_int("RETRY_MAX_ATTEMPTS", 8),
            max_total_wait=env_float("RETRY_MAX_TOTAL_WAIT", 300.0),
        )
        if retry_policy.max_attempts < 1:
            raise ConfigurationError(
                "RETRY_MAX_ATTEMPTS must be at least 1", key="RETRY_MAX_ATTEMPTS"
            )

        return cls(
            api_key=api_key,
            base_url=(env_get("PATIENTS_API_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            max_pages=env_int("PATIENTS_MAX_PAGES", 3),
            page_limit=env_int("PATIENTS_PAGE_LIMIT", 50),
            request_timeout=env_float("PATIENTS_REQUEST_TIMEOUT", 30),
            pacing_delay=env_float("PATIENTS_PACING_DELAY", 1.0),
            empty_page_retries=env_int("PATIENTS_EMPTY_PAGE_RETRIES", 3),
            empty_page_delay=env_float("PATIENTS_EMPTY_PAGE_DELAY", 1.0),
            abort_on_empty_page=env_bool("PATIENTS_ABORT_ON_EMPTY_PAGE", False),
            retry_policy=retry_policy,
            submit_max_attempts=env_int("SUBMIT_MAX_ATTEMPTS", 1),
            output_dir=env_get("OUTPUT_DIR") or "output",
            log_dir=env_get("LOG_DIR") or "logs",
        )
