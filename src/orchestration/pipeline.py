"""
Pipeline Orchestrator - Collect, Assess, Submit

One run of the patient risk pipeline:
1. Collect every patient page from the API
2. Score each patient and build the alert sets
3. Save the assessment locally
4. Submit the alert sets back to the API
5. Write the run report

Each stage reports SUCCESS / DEGRADED / FATAL and the orchestrator turns
that into the exit code.
"""

import logging
import os
from typing import Any, Dict, Optional, Sequence, Tuple

import polars as pl
import requests

from src.coreutils.config import PipelineConfig
from src.coreutils.errors import (
    CollectionError,
    PipelineCancelled,
    PipelineError,
    SubmissionError,
)
from src.coreutils.request import CancellationToken, FetchStats, new_session
from src.coreutils.results import StageStatus
from src.coreutils.time import date_stamp, utc_now

# Extract layer imports
from src.extract.data_fetcher import CollectionResult, fetch_all_patients
from src.extract.patients_api import PatientsAPIClient
from src.extract.schemas import PatientRecord

# Transform layer imports
from src.transformation.schemas import AlertSets
from src.transformation.transformers import (
    build_alert_sets,
    create_assessment_frame,
    find_duplicate_ids,
    get_summary_stats,
    score_patients,
    sort_by_risk,
)
from src.transformation.validators import (
    validate_assessment_schema,
    validate_data_quality,
)

# Load layer imports
from src.load.assessment_submitter import AssessmentSubmitter
from src.load.local_storage import save_json, save_parquet

from .report import (
    EXIT_CANCELLED,
    EXIT_COLLECTION_FAILED,
    EXIT_SUBMISSION_FAILED,
    RunReport,
)

logger = logging.getLogger(__name__)


def assess_records(
    records: Sequence[PatientRecord],
) -> Tuple[AlertSets, pl.DataFrame, Dict[str, Any], Dict[str, Any]]:
    """
    Score records and build every assessment output

    Returns:
        Tuple of (alert sets, assessment frame, quality metrics, summary stats)
    """
    scored = score_patients(records)
    alerts = build_alert_sets(scored)

    frame = create_assessment_frame(scored)
    validate_assessment_schema(frame)
    quality = validate_data_quality(frame)
    stats = get_summary_stats(frame)

    return alerts, frame, quality, stats


def log_alert_summary(alerts: AlertSets) -> None:
    """Log the three alert lists"""
    logger.info(
        f"High-Risk Patients ({len(alerts.high_risk_patients)}): {alerts.high_risk_patients}"
    )
    logger.info(f"Fever Patients ({len(alerts.fever_patients)}): {alerts.fever_patients}")
    logger.info(
        f"Data Quality Issues ({len(alerts.data_quality_issues)}): {alerts.data_quality_issues}"
    )


class PipelineOrchestrator:
    """Orchestrates one run of the patient risk pipeline"""

    def __init__(
        self,
        config: PipelineConfig,
        dry_run: bool = False,
        save_output: bool = True,
        client: Optional[PatientsAPIClient] = None,
        submitter: Optional[AssessmentSubmitter] = None,
        cancel_token: Optional[CancellationToken] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Pipeline orchestrator

        Args:
            config: Pipeline configuration
            dry_run: If true, skip the assessment submission
            save_output: If true, write assessments and the run report to config.output_dir
            client: Patients API client (built from config if not provided)
            submitter: Assessment submitter (built from config if not provided)
            cancel_token: Shared cancellation signal
            session: HTTP session shared by client and submitter
        """
        self.config = config
        self.dry_run = dry_run
        self.save_output = save_output
        self.cancel_token = cancel_token or CancellationToken()

        if client is None or submitter is None:
            session = session or new_session()
        self.client = client or PatientsAPIClient(config, session, self.cancel_token)
        self.submitter = submitter or AssessmentSubmitter(
            config, session, self.cancel_token, dry_run=dry_run
        )

        if self.dry_run:
            logger.info("🔍 DRY RUN MODE: assessment will not be submitted")

    def run(self) -> RunReport:
        """
        Run the pipeline

        Returns:
            RunReport: Outcome of the run, including its exit code
        """
        report = RunReport(started_at=utc_now().isoformat(), dry_run=self.dry_run)

        logger.info("🚀 Starting Patient Risk Pipeline")
        logger.info("=" * 50)

        try:
            self._run_stages(report)
        except PipelineCancelled as e:
            logger.warning("🛑 Pipeline cancelled")
            report.fail(e, EXIT_CANCELLED)
        except Exception as e:
            logger.error(f"❌ Pipeline crashed: {e}")
            report.fail(
                PipelineError(str(e), code="UNEXPECTED_ERROR", details={"type": type(e).__name__}),
                EXIT_COLLECTION_FAILED,
            )
            raise
        finally:
            report.finished_at = utc_now().isoformat()
            self._record_fetch_stats(report)
            if self.save_output:
                self._save_report(report)

        if report.status == StageStatus.FATAL:
            logger.error(f"❌ Pipeline failed (exit code {report.exit_code})")
        else:
            logger.info(f"✅ Pipeline completed ({report.status.value})")
        return report

    def _run_stages(self, report: RunReport) -> None:
        # Step 1: Collect
        logger.info("🔄 Step 1: Collecting patients...")
        collection = fetch_all_patients(self.client, self.config, self.cancel_token)
        self._record_collection(report, collection)

        if collection.status == StageStatus.FATAL:
            report.fail(
                CollectionError(
                    "Patient collection failed",
                    details={"page_errors": list(collection.errors)},
                ),
                EXIT_COLLECTION_FAILED,
            )
            return
        if collection.status == StageStatus.DEGRADED:
            report.degrade(
                CollectionError(
                    "Patient collection degraded",
                    details={
                        "skipped_pages": list(collection.skipped_pages),
                        "dropped_records": collection.dropped_records,
                    },
                )
            )

        # Step 2: Assess
        logger.info("🔄 Step 2: Assessing patients...")
        alerts, frame, quality, stats = assess_records(collection.records)
        self._record_assessment(report, collection, quality, stats)

        # Step 3: Summary
        log_alert_summary(alerts)

        # Step 4: Save locally
        if self.save_output:
            logger.info("💾 Step 3: Saving assessment locally...")
            self._save_assessment(report, frame, alerts)

        # Step 5: Submit
        logger.info("🔄 Step 4: Submitting assessment...")
        submission = self.submitter.submit(alerts)
        report.submission_status = submission.status
        report.submission_response = submission.response

        if submission.status == StageStatus.FATAL:
            report.fail(
                SubmissionError(f"Assessment submission failed: {submission.error}"),
                EXIT_SUBMISSION_FAILED,
            )

    def _record_collection(self, report: RunReport, collection: CollectionResult) -> None:
        report.collection_status = collection.status
        report.pages_collected = list(collection.pages_collected)
        report.skipped_pages = list(collection.skipped_pages)
        report.empty_page_retries = collection.empty_page_retries
        report.page_errors = collection.page_errors
        report.dropped_records = collection.dropped_records
        report.total_patients = len(collection.records)

    def _record_assessment(
        self,
        report: RunReport,
        collection: CollectionResult,
        quality: Dict[str, Any],
        stats: Dict[str, Any],
    ) -> None:
        malformed = quality["malformed_counts"]
        report.malformed_age = malformed["age"]
        report.malformed_temperature = malformed["temperature"]
        report.malformed_blood_pressure = malformed["blood_pressure"]
        report.duplicate_patient_ids = find_duplicate_ids(collection.records)
        report.high_risk_count = stats["high_risk"]
        report.fever_count = stats["fever"]
        report.data_quality_count = stats["data_quality_issues"]
        report.mean_total_risk = stats["mean_total_risk"]

    def _record_fetch_stats(self, report: RunReport) -> None:
        for source in (self.client, self.submitter):
            stats = getattr(source, "stats", None)
            if not isinstance(stats, FetchStats):
                continue
            report.request_attempts += stats.attempts
            report.rate_limited_retries += stats.rate_limited_retries
            report.server_error_retries += stats.server_error_retries

    def _save_assessment(
        self, report: RunReport, frame: pl.DataFrame, alerts: AlertSets
    ) -> None:
        today = date_stamp()
        try:
            report.output_files.append(
                save_parquet(
                    sort_by_risk(frame),
                    os.path.join(
                        self.config.output_dir, f"patient_assessments_{today}.parquet"
                    ),
                )
            )
            report.output_files.append(
                save_json(
                    alerts.to_payload(),
                    os.path.join(self.config.output_dir, f"alerts_{today}.json"),
                )
            )
        except OSError as e:
            logger.warning(f"⚠️ Could not save assessment locally: {e}")
            report.degrade(PipelineError(f"Local save failed: {e}", code="LOCAL_SAVE_ERROR"))

    def _save_report(self, report: RunReport) -> None:
        filepath = os.path.join(self.config.output_dir, f"run_report_{date_stamp()}.json")
        try:
            save_json(report.to_dict(), filepath)
        except OSError as e:
            logger.warning(f"⚠️ Could not save run report: {e}")
