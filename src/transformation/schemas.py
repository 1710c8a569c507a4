"""
Transformation Layer Schemas

Schemas for the per-patient assessment frame and the aggregated alert sets.
"""

from typing import List

import polars as pl
from pydantic import BaseModel, ConfigDict, Field

ASSESSMENT_SCHEMA = pl.Schema(
    [
        ("patient_id", pl.String()),
        ("age", pl.Float64()),
        ("temperature", pl.Float64()),
        ("systolic", pl.Int64()),
        ("diastolic", pl.Int64()),
        ("age_risk", pl.Int64()),
        ("temperature_risk", pl.Int64()),
        ("bp_risk", pl.Int64()),
        ("total_risk", pl.Int64()),
        ("age_valid", pl.Boolean()),
        ("temperature_valid", pl.Boolean()),
        ("bp_valid", pl.Boolean()),
        ("high_risk", pl.Boolean()),
        ("fever", pl.Boolean()),
        ("data_quality_issue", pl.Boolean()),
    ]
)


class AlertSets(BaseModel):
    """Patient identifiers per alert category, in input order"""

    model_config = ConfigDict(frozen=True)

    high_risk_patients: List[str] = Field(
        default_factory=list, description="Total risk score of 4 or more"
    )
    fever_patients: List[str] = Field(
        default_factory=list, description="Valid temperature of 99.6°F or more"
    )
    data_quality_issues: List[str] = Field(
        default_factory=list, description="At least one vital sign invalid or missing"
    )

    def to_payload(self) -> dict:
        """Body of POST /submit-assessment"""
        return self.model_dump()
