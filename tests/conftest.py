"""
Shared test doubles for the patient risk pipeline tests
"""

import os
import sys
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.coreutils.config import PipelineConfig
from src.coreutils.request import CancellationToken, FetchStats
from src.extract.patients_api import PageResult
from src.extract.schemas import PatientRecord


class RecordingToken(CancellationToken):
    """Cancellation token that records waits instead of sleeping"""

    def __init__(self):
        super().__init__()
        self.waits = []

    def sleep(self, seconds: float) -> None:
        self.raise_if_cancelled()
        self.waits.append(seconds)


class FakeClient:
    """Patients client serving queued PageResults per page number"""

    def __init__(self, pages):
        self.pages = {page: list(results) for page, results in pages.items()}
        self.requested = []
        self.stats = FetchStats()
        self.cancel_token = CancellationToken()

    def fetch_page(self, page):
        self.requested.append(page)
        queue = self.pages.get(page, [])
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0] if queue else PageResult(page=page)


def make_records(prefix, count, **vitals):
    """Healthy patient records with ids prefix-1 .. prefix-count"""
    fields = {"age": 30, "temperature": 98.6, "blood_pressure": "110/70", **vitals}
    return tuple(
        PatientRecord(patient_id=f"{prefix}-{i}", **fields) for i in range(1, count + 1)
    )


@pytest.fixture
def token():
    return RecordingToken()


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(
        api_key="test-key",
        base_url="https://api.test",
        output_dir=str(tmp_path / "output"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def make_response():
    """Build a fake requests.Response"""

    def _make(status_code=200, payload=None, invalid_json=False):
        response = Mock()
        response.status_code = status_code
        if invalid_json:
            response.json.side_effect = ValueError("Expecting value: line 1 column 1")
        else:
            response.json.return_value = payload if payload is not None else {}
        return response

    return _make


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def records():
    return make_records
