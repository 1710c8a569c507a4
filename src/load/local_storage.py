"""
Local Storage - Load Layer

Pure functions for local file storage operations.
Handles Parquet and JSON files.
"""

import json
import logging
import os
from typing import Any, List

import polars as pl

from src.extract.schemas import PatientRecord, parse_patients_page

logger = logging.getLogger(__name__)


def _ensure_parent_dir(filepath: str) -> None:
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)


def save_parquet(df: pl.DataFrame, filepath: str) -> str:
    """
    Save DataFrame to Parquet file

    Args:
        df: DataFrame to save
        filepath: Path to save file

    Returns:
        str: Path to saved file
    """
    logger.info(f"Saving DataFrame to Parquet: {filepath}")

    _ensure_parent_dir(filepath)
    df.write_parquet(filepath)

    logger.info(f"Saved {df.height} records to {filepath}")
    return filepath


def save_json(data: Any, filepath: str) -> str:
    """
    Save JSON-serialisable data to a file

    Args:
        data: Data to save
        filepath: Path to save file

    Returns:
        str: Path to saved file
    """
    logger.info(f"Saving JSON: {filepath}")

    _ensure_parent_dir(filepath)
    with open(filepath, "w") as f:
        json.dump(data, f, indent=2, default=str)

    logger.info(f"Saved {filepath}")
    return filepath


def load_json(filepath: str) -> Any:
    """Load JSON data from a file"""
    logger.info(f"Loading JSON: {filepath}")

    if not os.path.exists(filepath):
        raise FileNotFoundError(f"JSON file not found: {filepath}")

    with open(filepath) as f:
        return json.load(f)


def load_patient_records(filepath: str) -> List[PatientRecord]:
    """
    Load patient records saved as a JSON list or as a raw API page

    Args:
        filepath: Path to JSON file

    Returns:
        List[PatientRecord]: Records with a usable patient_id
    """
    data = load_json(filepath)
    if isinstance(data, list):
        data = {"data": data}

    records, _, dropped = parse_patients_page(data)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed items from {filepath}")

    logger.info(f"Loaded {len(records)} patient records from {filepath}")
    return records
