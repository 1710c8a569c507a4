"""
Test Pipeline Orchestrator - stage outcomes, exit codes and the run report
"""

import json
import os
import sys
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.coreutils.results import StageStatus
from src.extract.patients_api import PageResult, PatientsAPIClient
from src.load.assessment_submitter import AssessmentSubmitter, SubmissionResult
from src.main import main
from src.orchestration.pipeline import PipelineOrchestrator
from src.orchestration.report import (
    EXIT_CANCELLED,
    EXIT_COLLECTION_FAILED,
    EXIT_CONFIGURATION_ERROR,
    EXIT_SUBMISSION_FAILED,
    EXIT_SUCCESS,
)
from src.transformation.schemas import AlertSets


@pytest.fixture
def submitter():
    submitter = Mock()
    submitter.submit.return_value = SubmissionResult(
        status=StageStatus.SUCCESS, response={"success": True}
    )
    return submitter


@pytest.fixture
def three_pages(fake_client, records):
    return fake_client(
        {
            1: [PageResult(page=1, records=records("a", 2))],
            2: [PageResult(page=2, records=records("b", 2, temperature=101.5, age=70))],
            3: [PageResult(page=3, records=records("c", 1, blood_pressure="bad"))],
        }
    )


def test_successful_run(config, token, three_pages, submitter):
    orchestrator = PipelineOrchestrator(
        config, client=three_pages, submitter=submitter, cancel_token=token
    )

    report = orchestrator.run()

    assert report.exit_code == EXIT_SUCCESS
    assert report.status == StageStatus.SUCCESS
    assert report.total_patients == 5
    assert report.pages_collected == [1, 2, 3]
    assert report.malformed_blood_pressure == 1
    assert report.high_risk_count == 2
    assert report.fever_count == 2
    assert report.data_quality_count == 1
    assert report.submission_status == StageStatus.SUCCESS

    submitter.submit.assert_called_once_with(
        AlertSets(
            high_risk_patients=["b-1", "b-2"],
            fever_patients=["b-1", "b-2"],
            data_quality_issues=["c-1"],
        )
    )


def test_successful_run_writes_outputs(config, token, three_pages, submitter):
    report = PipelineOrchestrator(
        config, client=three_pages, submitter=submitter, cancel_token=token
    ).run()

    assert len(report.output_files) == 2
    assert all(os.path.exists(path) for path in report.output_files)

    report_files = [f for f in os.listdir(config.output_dir) if f.startswith("run_report_")]
    assert len(report_files) == 1
    with open(os.path.join(config.output_dir, report_files[0])) as f:
        saved = json.load(f)
    assert saved["status"] == "success"
    assert saved["exit_code"] == 0
    assert saved["total_patients"] == 5


def test_no_save_writes_nothing(config, token, three_pages, submitter):
    PipelineOrchestrator(
        config,
        save_output=False,
        client=three_pages,
        submitter=submitter,
        cancel_token=token,
    ).run()

    assert not os.path.exists(config.output_dir)


def test_collection_failure_skips_submission(config, token, fake_client, submitter):
    report = PipelineOrchestrator(
        config, client=fake_client({}), submitter=submitter, cancel_token=token
    ).run()

    assert report.exit_code == EXIT_COLLECTION_FAILED
    assert report.status == StageStatus.FATAL
    assert report.collection_status == StageStatus.FATAL
    assert report.errors[0]["error"] == "COLLECTION_ERROR"
    submitter.submit.assert_not_called()


def test_submission_failure_exit_code(config, token, three_pages, submitter):
    submitter.submit.return_value = SubmissionResult(
        status=StageStatus.FATAL, error="Request failed with status 400"
    )

    report = PipelineOrchestrator(
        config, client=three_pages, submitter=submitter, cancel_token=token
    ).run()

    assert report.exit_code == EXIT_SUBMISSION_FAILED
    assert report.status == StageStatus.FATAL
    assert report.errors[-1]["error"] == "SUBMISSION_ERROR"
    assert "status 400" in report.errors[-1]["message"]


def test_degraded_collection_still_submits(config, token, fake_client, records, submitter):
    client = fake_client(
        {
            1: [PageResult(page=1, records=records("a", 1))],
            3: [PageResult(page=3, records=records("c", 1))],
        }
    )

    report = PipelineOrchestrator(
        config, client=client, submitter=submitter, cancel_token=token
    ).run()

    assert report.exit_code == EXIT_SUCCESS
    assert report.status == StageStatus.DEGRADED
    assert report.skipped_pages == [2]
    assert report.empty_page_retries == 3
    assert report.errors == [
        {
            "error": "COLLECTION_ERROR",
            "message": "Patient collection degraded",
            "details": {"skipped_pages": [2], "dropped_records": 0},
        }
    ]
    submitter.submit.assert_called_once()


def test_dry_run_does_not_submit(config, token, three_pages):
    session = Mock()

    orchestrator = PipelineOrchestrator(
        config, dry_run=True, client=three_pages, cancel_token=token, session=session
    )
    report = orchestrator.run()

    assert isinstance(orchestrator.submitter, AssessmentSubmitter)
    assert report.exit_code == EXIT_SUCCESS
    assert report.submission_status == StageStatus.SKIPPED
    session.request.assert_not_called()


def test_cancelled_run(config, token, three_pages, submitter):
    token.cancel()

    report = PipelineOrchestrator(
        config, client=three_pages, submitter=submitter, cancel_token=token
    ).run()

    assert report.exit_code == EXIT_CANCELLED
    assert report.errors[0]["error"] == "CANCELLED"
    assert three_pages.requested == []
    submitter.submit.assert_not_called()


def test_unexpected_error_is_recorded_as_failure(config, token, submitter):
    client = Mock()
    client.fetch_page.side_effect = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        PipelineOrchestrator(
            config, client=client, submitter=submitter, cancel_token=token
        ).run()

    report_files = [f for f in os.listdir(config.output_dir) if f.startswith("run_report_")]
    with open(os.path.join(config.output_dir, report_files[0])) as f:
        saved = json.load(f)
    assert saved["status"] == "fatal"
    assert saved["exit_code"] == EXIT_COLLECTION_FAILED
    assert saved["errors"][0]["error"] == "UNEXPECTED_ERROR"
    assert saved["errors"][0]["details"] == {"type": "RuntimeError"}
    submitter.submit.assert_not_called()


def test_end_to_end_with_http_session(config, token, make_response):
    """Paginated GETs with a rate limit, then the POST of the assessment"""
    pages = {
        1: [
            {"patient_id": "P1", "age": 70, "temperature": 102, "blood_pressure": "150/95"},
            {"patient_id": "P2", "age": "unknown", "temperature": 98.0, "blood_pressure": "110/70"},
        ],
        2: [
            {"patient_id": "P3", "age": 45, "temperature": 99.8, "blood_pressure": "125/85"},
        ],
    }
    responses = {"rate_limited": False}

    def request(method, url, **kwargs):
        if method == "POST":
            return make_response(200, {"success": True, "received": kwargs["json"]})
        page = kwargs["params"]["page"]
        if page == 2 and not responses["rate_limited"]:
            responses["rate_limited"] = True
            return make_response(429)
        return make_response(
            200,
            {
                "data": pages[page],
                "pagination": {"page": page, "limit": 20, "total": 3, "totalPages": 2},
            },
        )

    session = Mock()
    session.request.side_effect = request
    client = PatientsAPIClient(config, session=session, cancel_token=token)
    submitter = AssessmentSubmitter(config, session=session, cancel_token=token)

    report = PipelineOrchestrator(
        config, client=client, submitter=submitter, cancel_token=token, save_output=False
    ).run()

    assert report.exit_code == EXIT_SUCCESS
    assert report.pages_collected == [1, 2]
    assert report.rate_limited_retries == 1
    assert report.request_attempts == 4
    assert report.submission_response["received"] == {
        "high_risk_patients": ["P1", "P3"],
        "fever_patients": ["P1", "P3"],
        "data_quality_issues": ["P2"],
    }
    # pacing after page 1, then the 429 cooldown
    assert token.waits == [1.0, 15.0]


def test_main_without_api_key(monkeypatch, tmp_path):
    monkeypatch.delenv("PATIENTS_API_KEY", raising=False)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))

    assert main(["run"]) == EXIT_CONFIGURATION_ERROR


def test_main_assess_command(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    input_file = tmp_path / "patients.json"
    input_file.write_text(
        json.dumps(
            [
                {"patient_id": "P1", "age": 70, "temperature": 102, "blood_pressure": "150/95"},
                {"patient_id": "P2"},
            ]
        )
    )

    assert main(["assess", "--input", str(input_file)]) == EXIT_SUCCESS

    printed = json.loads(capsys.readouterr().out)
    assert printed == {
        "high_risk_patients": ["P1"],
        "fever_patients": ["P1"],
        "data_quality_issues": ["P2"],
    }


def test_main_assess_missing_file(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))

    assert main(["assess", "--input", str(tmp_path / "missing.json")]) == EXIT_CONFIGURATION_ERROR
