"""
Data Validators - Transform Layer

Pure functions for validating the assessment frame.
Ensures schema compliance and reports data quality.
"""

import logging
from typing import Any, Dict

import polars as pl

from .schemas import ASSESSMENT_SCHEMA

logger = logging.getLogger(__name__)

VALIDITY_COLUMNS = {
    "age": "age_valid",
    "temperature": "temperature_valid",
    "blood_pressure": "bp_valid",
}


def validate_assessment_schema(df: pl.DataFrame) -> bool:
    """
    Validate assessment data matches expected schema

    Args:
        df: Assessment DataFrame

    Returns:
        bool: True if valid, raises exception if invalid
    """
    if df.schema != ASSESSMENT_SCHEMA:
        raise ValueError(
            f"Schema mismatch: expected {ASSESSMENT_SCHEMA}, got {df.schema}"
        )

    null_ids = df.select(pl.col("patient_id").is_null().sum()).item()
    if null_ids > 0:
        raise ValueError(f"Null values found in required field 'patient_id': {null_ids}")

    logger.info(f"Assessment validation passed: {df.height} records")
    return True


def validate_data_quality(df: pl.DataFrame) -> Dict[str, Any]:
    """
    Count malformed vital signs

    Args:
        df: Assessment DataFrame

    Returns:
        Dict: Quality metrics
    """
    logger.info("Validating data quality for patient assessments")

    quality_metrics = {
        "total_records": df.height,
        "malformed_counts": {},
        "records_with_issues": 0,
        "duplicate_patient_ids": df.height - df["patient_id"].n_unique(),
    }

    for field, column in VALIDITY_COLUMNS.items():
        malformed = df.select((~pl.col(column)).sum()).item() if df.height else 0
        quality_metrics["malformed_counts"][field] = int(malformed)

    if df.height:
        quality_metrics["records_with_issues"] = int(
            df.select(pl.col("data_quality_issue").sum()).item()
        )

    for field, malformed in quality_metrics["malformed_counts"].items():
        if malformed > 0:
            logger.warning(f"Field '{field}' is malformed or missing in {malformed} records")

    if quality_metrics["duplicate_patient_ids"] > 0:
        logger.warning(
            f"Duplicate patient ids found: {quality_metrics['duplicate_patient_ids']}"
        )

    logger.info("Data quality validation completed for patient assessments")
    return quality_metrics
