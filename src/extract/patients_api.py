"""
Patients API Client - Pure I/O Operations

This module handles the page requests to the patients API with no business logic.
Returns raw patient records that can be scored by the transform layer.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

from src.coreutils.config import PAGE_SIZE, PipelineConfig
from src.coreutils.errors import FetchError
from src.coreutils.request import (
    CancellationToken,
    FetchStats,
    fetch_with_retry,
    new_session,
)
from src.coreutils.results import StageStatus
from .schemas import PatientRecord, parse_patients_page

logger = logging.getLogger(__name__)

PATIENTS_ENDPOINT = "/patients"


@dataclass(frozen=True)
class PageResult:
    """One page of patients, possibly degraded to empty"""

    page: int
    records: Tuple[PatientRecord, ...] = ()
    status: StageStatus = StageStatus.SUCCESS
    total_pages: Optional[int] = None
    has_next: Optional[bool] = None
    dropped_records: int = 0
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.records


class PatientsAPIClient:
    """API client for the paginated patients endpoint"""

    def __init__(
        self,
        config: PipelineConfig,
        session: Optional[requests.Session] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.config = config
        self.session = session or new_session()
        self.cancel_token = cancel_token or CancellationToken()
        self.stats = FetchStats()

    @property
    def patients_url(self) -> str:
        return f"{self.config.base_url}{PATIENTS_ENDPOINT}"

    def fetch_page(self, page: int) -> PageResult:
        """
        Fetch one page of patients

        Failures are logged and the page is returned empty so pagination can
        continue; only cancellation propagates.

        Args:
            page: 1-based page number

        Returns:
            PageResult: Records of the page in API order
        """
        params = {"page": page, "limit": PAGE_SIZE}
        logger.debug(f"Fetching from {self.patients_url} with {params}")
        start_time = time.time()

        try:
            payload = fetch_with_retry(
                self.session,
                "GET",
                self.patients_url,
                headers=self.config.auth_headers,
                params=params,
                policy=self.config.retry_policy,
                stats=self.stats,
                cancel_token=self.cancel_token,
                timeout=self.config.request_timeout,
            )
        except FetchError as e:
            logger.error(f"❌ Hard failure on page {page}: {e}")
            return PageResult(page=page, status=StageStatus.DEGRADED, error=str(e))

        records, pagination, dropped = parse_patients_page(payload)
        elapsed = time.time() - start_time
        logger.debug(f"Fetched page {page} ({len(records)} records): {elapsed:.2f} seconds")

        return PageResult(
            page=page,
            records=tuple(records),
            status=StageStatus.DEGRADED if dropped else StageStatus.SUCCESS,
            total_pages=(
                pagination.resolve_total_pages(PAGE_SIZE)
                if pagination
                else None
            ),
            has_next=pagination.has_next if pagination else None,
            dropped_records=dropped,
        )
