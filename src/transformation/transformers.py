"""
Data Transformers - Risk Assessment

Pure functions that score patients and aggregate them into alert sets.
"""

import logging
from typing import Any, Dict, List, Sequence, Tuple

import polars as pl

from src.extract.schemas import PatientRecord
from .risk_rules import RiskFactors, score_vitals
from .schemas import ASSESSMENT_SCHEMA, AlertSets

logger = logging.getLogger(__name__)

ScoredPatient = Tuple[str, RiskFactors]


def score_patient(record: PatientRecord) -> RiskFactors:
    """Score one patient record"""
    return score_vitals(record.age, record.temperature, record.blood_pressure)


def score_patients(records: Sequence[PatientRecord]) -> List[ScoredPatient]:
    """Score every record, keeping input order"""
    return [(record.patient_id, score_patient(record)) for record in records]


def build_alert_sets(scored: Sequence[ScoredPatient]) -> AlertSets:
    """
    Classify scored patients into the three alert sets

    A patient id seen more than once is kept at its first position.
    """
    high_risk: Dict[str, None] = {}
    fever: Dict[str, None] = {}
    data_issues: Dict[str, None] = {}

    for patient_id, factors in scored:
        if factors.is_high_risk:
            high_risk.setdefault(patient_id)
        if factors.has_fever:
            fever.setdefault(patient_id)
        if factors.has_data_quality_issue:
            data_issues.setdefault(patient_id)

    return AlertSets(
        high_risk_patients=list(high_risk),
        fever_patients=list(fever),
        data_quality_issues=list(data_issues),
    )


def assess_patients(records: Sequence[PatientRecord]) -> AlertSets:
    """Score and classify patient records"""
    return build_alert_sets(score_patients(records))


def find_duplicate_ids(records: Sequence[PatientRecord]) -> List[str]:
    """Patient ids that occur more than once, in first-seen order"""
    seen = set()
    duplicates: Dict[str, None] = {}
    for record in records:
        if record.patient_id in seen:
            duplicates.setdefault(record.patient_id)
        seen.add(record.patient_id)
    return list(duplicates)


def create_assessment_frame(scored: Sequence[ScoredPatient]) -> pl.DataFrame:
    """
    Create one row per scored patient

    Args:
        scored: (patient_id, RiskFactors) pairs

    Returns:
        pl.DataFrame: Assessment data with ASSESSMENT_SCHEMA
    """
    rows = [
        {
            "patient_id": patient_id,
            "age": factors.age,
            "temperature": factors.temperature,
            "systolic": factors.systolic,
            "diastolic": factors.diastolic,
            "age_risk": factors.age_risk,
            "temperature_risk": factors.temperature_risk,
            "bp_risk": factors.bp_risk,
            "total_risk": factors.total_risk,
            "age_valid": factors.age_valid,
            "temperature_valid": factors.temperature_valid,
            "bp_valid": factors.bp_valid,
            "high_risk": factors.is_high_risk,
            "fever": factors.has_fever,
            "data_quality_issue": factors.has_data_quality_issue,
        }
        for patient_id, factors in scored
    ]

    df = pl.DataFrame(rows, schema=ASSESSMENT_SCHEMA)
    logger.info(f"Created {df.height} patient assessment records")
    return df


def sort_by_risk(df: pl.DataFrame) -> pl.DataFrame:
    """Sort assessments by total risk, highest first, then patient id"""
    return df.sort(["total_risk", "patient_id"], descending=[True, False])


def get_summary_stats(df: pl.DataFrame) -> Dict[str, Any]:
    """
    Get summary statistics for an assessment frame

    Args:
        df: Assessment DataFrame

    Returns:
        Dict: Patient, alert and risk-score counts
    """
    if df.height == 0:
        return {
            "total_patients": 0,
            "high_risk": 0,
            "fever": 0,
            "data_quality_issues": 0,
            "mean_total_risk": None,
            "max_total_risk": None,
            "risk_distribution": {},
        }

    counts = df.select(
        pl.col("high_risk").sum().alias("high_risk"),
        pl.col("fever").sum().alias("fever"),
        pl.col("data_quality_issue").sum().alias("data_quality_issues"),
        pl.col("total_risk").mean().alias("mean_total_risk"),
        pl.col("total_risk").max().alias("max_total_risk"),
    ).row(0, named=True)

    distribution = (
        df.group_by("total_risk").agg(pl.len().alias("patients")).sort("total_risk")
    )

    return {
        "total_patients": df.height,
        "high_risk": int(counts["high_risk"]),
        "fever": int(counts["fever"]),
        "data_quality_issues": int(counts["data_quality_issues"]),
        "mean_total_risk": round(counts["mean_total_risk"], 3),
        "max_total_risk": int(counts["max_total_risk"]),
        "risk_distribution": {
            int(score): int(patients)
            for score, patients in distribution.iter_rows()
        },
    }
