"""
Assessment Submitter - Load Layer

Posts the aggregated alert sets to the patients API. Hard failures are not
retried; they are reported back to the orchestrator as a FATAL result.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests

from src.coreutils.config import PipelineConfig
from src.coreutils.errors import FetchError, InvalidResponseError
from src.coreutils.request import (
    CancellationToken,
    FetchStats,
    fetch_with_retry,
    new_session,
)
from src.coreutils.results import StageStatus
from src.transformation.schemas import AlertSets

logger = logging.getLogger(__name__)

SUBMIT_ENDPOINT = "/submit-assessment"


@dataclass(frozen=True)
class SubmissionResult:
    status: StageStatus
    response: Optional[Any] = None
    error: Optional[str] = None


class AssessmentSubmitter:
    """Submits alert sets to POST /submit-assessment"""

    def __init__(
        self,
        config: PipelineConfig,
        session: Optional[requests.Session] = None,
        cancel_token: Optional[CancellationToken] = None,
        dry_run: bool = False,
    ):
        self.config = config
        self.session = session or new_session()
        self.cancel_token = cancel_token or CancellationToken()
        self.dry_run = dry_run
        self.stats = FetchStats()

    @property
    def submit_url(self) -> str:
        return f"{self.config.base_url}{SUBMIT_ENDPOINT}"

    def submit(self, alerts: AlertSets) -> SubmissionResult:
        """
        Submit the assessment

        Args:
            alerts: Alert sets to submit

        Returns:
            SubmissionResult: SUCCESS with the response body, SKIPPED in dry
            run mode, FATAL with the error message on failure
        """
        payload = alerts.to_payload()

        if self.dry_run:
            logger.info("🔍 DRY RUN: Skipping assessment submission")
            return SubmissionResult(status=StageStatus.SKIPPED)

        logger.info(f"Submitting assessment to {self.submit_url}")
        start_time = time.time()

        try:
            response = fetch_with_retry(
                self.session,
                "POST",
                self.submit_url,
                headers={**self.config.auth_headers, "Content-Type": "application/json"},
                json_body=payload,
                policy=self.config.submit_policy,
                stats=self.stats,
                cancel_token=self.cancel_token,
                timeout=self.config.request_timeout,
            )
        except InvalidResponseError as e:
            # status was 2xx, only the body is unreadable
            logger.warning(f"⚠️ Assessment accepted but response body is not JSON: {e}")
            response = None
        except FetchError as e:
            logger.error(f"❌ Assessment submission failed: {e}")
            return SubmissionResult(status=StageStatus.FATAL, error=str(e))

        elapsed = time.time() - start_time
        logger.info(f"✅ Assessment submitted in {elapsed:.2f} seconds")
        logger.info(f"Assessment Results: {response}")
        return SubmissionResult(status=StageStatus.SUCCESS, response=response)
