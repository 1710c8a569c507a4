"""
Data Fetcher - Extract Layer

Walks the paginated patients endpoint and accumulates every record.
No business logic, just I/O operations that return raw data.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from src.coreutils.config import PipelineConfig
from src.coreutils.request import CancellationToken
from src.coreutils.results import StageStatus
from .patients_api import PageResult, PatientsAPIClient
from .schemas import PatientRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionResult:
    """Everything collected from the patients endpoint"""

    records: Tuple[PatientRecord, ...]
    status: StageStatus
    pages_collected: Tuple[int, ...] = ()
    skipped_pages: Tuple[int, ...] = ()
    empty_page_retries: int = 0
    page_errors: int = 0
    dropped_records: int = 0
    errors: Tuple[str, ...] = field(default_factory=tuple)


def fetch_page_with_retries(
    client: PatientsAPIClient,
    page: int,
    config: PipelineConfig,
    cancel_token: CancellationToken,
) -> Tuple[PageResult, int, List[PageResult]]:
    """
    Fetch a page, re-requesting it while it comes back empty

    Returns:
        Tuple of (last result, number of empty-page retries, all attempts)
    """
    result = client.fetch_page(page)
    attempts = [result]
    retries = 0

    while result.is_empty and retries < config.empty_page_retries:
        delay = config.empty_page_delay * 2**retries
        retries += 1
        logger.warning(
            f"Page {page} returned no patients. "
            f"Retrying in {delay:g}s ({retries}/{config.empty_page_retries})..."
        )
        cancel_token.sleep(delay)
        result = client.fetch_page(page)
        attempts.append(result)

    return result, retries, attempts


def fetch_all_patients(
    client: PatientsAPIClient,
    config: PipelineConfig,
    cancel_token: Optional[CancellationToken] = None,
) -> CollectionResult:
    """
    Fetch all patient pages in order

    The page count starts at config.max_pages and is replaced by the count the
    API reports, never exceeding config.page_limit.

    Args:
        client: Patients API client
        config: Pipeline configuration
        cancel_token: Cancellation signal, checked before each page

    Returns:
        CollectionResult: Records in page order, then within-page order
    """
    cancel_token = cancel_token or client.cancel_token
    records: List[PatientRecord] = []
    collected: List[int] = []
    skipped: List[int] = []
    errors: List[str] = []
    empty_retries = 0
    page_errors = 0
    dropped = 0

    last_page = min(config.max_pages, config.page_limit)
    page = 1

    while page <= last_page:
        cancel_token.raise_if_cancelled()
        logger.info(f"Requesting page {page}...")

        result, retries, attempts = fetch_page_with_retries(
            client, page, config, cancel_token
        )
        empty_retries += retries
        dropped += result.dropped_records
        for attempt in attempts:
            if attempt.error:
                page_errors += 1
                errors.append(f"page {page}: {attempt.error}")

        if result.is_empty:
            if config.abort_on_empty_page:
                logger.error(f"❌ Page {page} still empty after {retries} retries, aborting")
                errors.append(f"page {page}: empty after {retries} retries")
                return CollectionResult(
                    records=tuple(records),
                    status=StageStatus.FATAL,
                    pages_collected=tuple(collected),
                    skipped_pages=tuple(skipped) + (page,),
                    empty_page_retries=empty_retries,
                    page_errors=page_errors,
                    dropped_records=dropped,
                    errors=tuple(errors),
                )
            logger.error(f"❌ Page {page} still empty after {retries} retries, skipping")
            skipped.append(page)
            page += 1
            continue

        records.extend(result.records)
        collected.append(page)
        logger.info(f"✅ Page {page} fetched. Total patients so far: {len(records)}")

        if result.total_pages is not None:
            reported = min(result.total_pages, config.page_limit)
            if reported != last_page:
                if result.total_pages > config.page_limit:
                    logger.warning(
                        f"API reports {result.total_pages} pages, "
                        f"stopping at safety limit of {config.page_limit}"
                    )
                else:
                    logger.info(f"API reports {reported} pages")
                last_page = reported

        if result.has_next is False:
            break

        page += 1
        if page <= last_page:
            cancel_token.sleep(config.pacing_delay)

    if not records:
        status = StageStatus.FATAL
        errors.append("no patients collected")
    elif skipped or dropped:
        status = StageStatus.DEGRADED
    else:
        status = StageStatus.SUCCESS

    logger.info(f"✅ Finished fetching {len(records)} patients ({status.value})")
    return CollectionResult(
        records=tuple(records),
        status=status,
        pages_collected=tuple(collected),
        skipped_pages=tuple(skipped),
        empty_page_retries=empty_retries,
        page_errors=page_errors,
        dropped_records=dropped,
        errors=tuple(errors),
    )
