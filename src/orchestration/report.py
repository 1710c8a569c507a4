"""
Run Report

Structured record of one pipeline run: what was collected, what went wrong
along the way and how the run ended.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from src.coreutils.errors import PipelineError
from src.coreutils.results import StageStatus

EXIT_SUCCESS = 0
EXIT_COLLECTION_FAILED = 1
EXIT_SUBMISSION_FAILED = 2
EXIT_CONFIGURATION_ERROR = 3
EXIT_CANCELLED = 130


@dataclass
class RunReport:
    started_at: str
    finished_at: Optional[str] = None
    status: StageStatus = StageStatus.SUCCESS
    exit_code: int = EXIT_SUCCESS
    dry_run: bool = False

    # collection
    collection_status: Optional[StageStatus] = None
    pages_collected: List[int] = field(default_factory=list)
    skipped_pages: List[int] = field(default_factory=list)
    empty_page_retries: int = 0
    page_errors: int = 0
    dropped_records: int = 0
    request_attempts: int = 0
    rate_limited_retries: int = 0
    server_error_retries: int = 0

    # assessment
    total_patients: int = 0
    malformed_age: int = 0
    malformed_temperature: int = 0
    malformed_blood_pressure: int = 0
    duplicate_patient_ids: List[str] = field(default_factory=list)
    high_risk_count: int = 0
    fever_count: int = 0
    data_quality_count: int = 0
    mean_total_risk: Optional[float] = None

    # submission
    submission_status: Optional[StageStatus] = None
    submission_response: Optional[Any] = None

    output_files: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def degrade(self, error: PipelineError) -> None:
        """Record a non-fatal problem"""
        self.errors.append(error.to_dict())
        if self.status == StageStatus.SUCCESS:
            self.status = StageStatus.DEGRADED

    def fail(self, error: PipelineError, exit_code: int) -> None:
        """Record a fatal problem and the exit code it maps to"""
        self.errors.append(error.to_dict())
        self.status = StageStatus.FATAL
        self.exit_code = exit_code

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("status", "collection_status", "submission_status"):
            if data[key] is not None:
                data[key] = data[key].value
        return data
