"""
Risk Rules - Fixed Scoring Thresholds

Maps a single patient's vital signs to risk bands. The thresholds are
business rules, not configuration.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

AGE_HIGH_RISK = 66
AGE_MODERATE_RISK = 40

TEMPERATURE_HIGH_FEVER = 101.0
TEMPERATURE_FEVER = 99.6

HIGH_RISK_THRESHOLD = 4

BLOOD_PRESSURE_PATTERN = re.compile(r"(\d{2,3})/(\d{2,3})", re.ASCII)


@dataclass(frozen=True)
class RiskFactors:
    """Per-patient risk bands and validity flags"""

    age_risk: int
    temperature_risk: int
    bp_risk: int
    age_valid: bool
    temperature_valid: bool
    bp_valid: bool
    age: Optional[float] = None
    temperature: Optional[float] = None
    systolic: Optional[int] = None
    diastolic: Optional[int] = None

    @property
    def total_risk(self) -> int:
        return self.age_risk + self.temperature_risk + self.bp_risk

    @property
    def is_high_risk(self) -> bool:
        return self.total_risk >= HIGH_RISK_THRESHOLD

    @property
    def has_fever(self) -> bool:
        return self.temperature_valid and self.temperature >= TEMPERATURE_FEVER

    @property
    def has_data_quality_issue(self) -> bool:
        return not (self.age_valid and self.temperature_valid and self.bp_valid)


def coerce_number(value: Any) -> Optional[float]:
    """
    Coerce a raw JSON value to a finite float

    Numbers are taken as-is and strings are parsed after stripping whitespace.
    Missing values, booleans, empty strings, containers, unparsable strings,
    non-finite numbers and digit-grouped strings like "4_5" all give None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            text = value.strip()
            if not text or "_" in text:
                return None
            number = float(text)
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_blood_pressure(value: Any) -> Optional[Tuple[int, int]]:
    """Parse 'SYS/DIA' into (systolic, diastolic); None if malformed"""
    if not isinstance(value, str):
        return None
    match = BLOOD_PRESSURE_PATTERN.fullmatch(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def age_risk(age: float) -> int:
    if age >= AGE_HIGH_RISK:
        return 2
    if age >= AGE_MODERATE_RISK:
        return 1
    return 0


def temperature_risk(temperature: float) -> int:
    if temperature >= TEMPERATURE_HIGH_FEVER:
        return 2
    if temperature >= TEMPERATURE_FEVER:
        return 1
    return 0


def blood_pressure_risk(systolic: int, diastolic: int) -> int:
    """Blood pressure band, first matching band wins"""
    if systolic >= 140 or diastolic >= 90:
        return 3  # stage 2
    if systolic >= 130 or diastolic >= 80:
        return 2  # stage 1
    if systolic >= 120 and diastolic < 80:
        return 1  # elevated
    return 0


def score_vitals(age: Any, temperature: Any, blood_pressure: Any) -> RiskFactors:
    """Score raw vital sign values; invalid components score 0"""
    age_value = coerce_number(age)
    temperature_value = coerce_number(temperature)
    pressure = parse_blood_pressure(blood_pressure)

    return RiskFactors(
        age_risk=age_risk(age_value) if age_value is not None else 0,
        temperature_risk=(
            temperature_risk(temperature_value) if temperature_value is not None else 0
        ),
        bp_risk=blood_pressure_risk(*pressure) if pressure is not None else 0,
        age_valid=age_value is not None,
        temperature_valid=temperature_value is not None,
        bp_valid=pressure is not None,
        age=age_value,
        temperature=temperature_value,
        systolic=pressure[0] if pressure else None,
        diastolic=pressure[1] if pressure else None,
    )
