"""
Extract Layer Schemas

Raw data schemas for data coming from the patients API.
Vital sign fields are kept exactly as received; judging them is the
transformation layer's job.
"""

import logging
import math
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class PatientRecord(BaseModel):
    """One patient as returned by GET /patients"""

    model_config = ConfigDict(extra="allow", frozen=True)

    patient_id: str = Field(..., description="Opaque patient identifier")
    age: Any = Field(None, description="Age in years, any JSON type")
    temperature: Any = Field(None, description="Temperature in Fahrenheit, any JSON type")
    blood_pressure: Any = Field(None, description="Expected as 'SYS/DIA'")

    @field_validator("patient_id", mode="before")
    @classmethod
    def validate_patient_id(cls, v):
        """Treat any JSON scalar as a string id, reject empty identifiers"""
        if v is None or isinstance(v, (bool, dict, list)):
            raise ValueError("patient_id must be a string or number")
        v = str(v).strip()
        if not v:
            raise ValueError("patient_id must not be empty")
        return v


class Pagination(BaseModel):
    """Pagination block of a patients page"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    page: Optional[int] = None
    limit: Optional[int] = Field(None, ge=1)
    total: Optional[int] = Field(None, ge=0)
    total_pages: Optional[int] = Field(None, alias="totalPages", ge=0)
    has_next: Optional[bool] = Field(None, alias="hasNext")

    def resolve_total_pages(self, page_size: int) -> Optional[int]:
        """Total page count, derived from the record total when not given"""
        if self.total_pages is not None:
            return self.total_pages
        if self.total is not None:
            return math.ceil(self.total / (self.limit or page_size))
        return None


def parse_patients_page(
    payload: Any,
) -> Tuple[List[PatientRecord], Optional[Pagination], int]:
    """
    Unwrap a patients page payload defensively

    Args:
        payload: Parsed JSON body of GET /patients

    Returns:
        Tuple of (records, pagination or None, number of dropped items)
    """
    if not isinstance(payload, dict):
        logger.warning(f"Unexpected page payload type: {type(payload).__name__}")
        return [], None, 0

    raw_records = payload.get("data")
    if not isinstance(raw_records, list):
        raw_records = []

    records = []
    dropped = 0
    for item in raw_records:
        if not isinstance(item, dict):
            dropped += 1
            logger.warning(f"Dropping non-object patient item: {item!r}")
            continue
        try:
            records.append(PatientRecord.model_validate(item))
        except ValidationError as e:
            dropped += 1
            logger.warning(f"Dropping patient item without a usable patient_id: {e}")

    pagination = None
    raw_pagination = payload.get("pagination")
    if isinstance(raw_pagination, dict):
        try:
            pagination = Pagination.model_validate(raw_pagination)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed pagination block: {e}")

    return records, pagination, dropped
