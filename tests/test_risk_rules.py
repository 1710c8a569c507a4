"""
Test Risk Rules - fixed thresholds for age, temperature and blood pressure
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.transformation.risk_rules import (
    blood_pressure_risk,
    coerce_number,
    parse_blood_pressure,
    score_vitals,
)


@pytest.mark.parametrize(
    "age, expected",
    [(0, 0), (39, 0), (39.9, 0), (40, 1), (65, 1), (65.9, 1), (66, 2), (90, 2), ("70", 2), (" 45 ", 1)],
)
def test_age_bands(age, expected):
    factors = score_vitals(age, 98.6, "110/70")

    assert factors.age_valid
    assert factors.age_risk == expected


@pytest.mark.parametrize(
    "age",
    ["unknown", None, "", "   ", True, [], {}, "NaN", "inf", float("nan"), float("inf"), "4_5"],
)
def test_invalid_age(age):
    factors = score_vitals(age, 98.6, "110/70")

    assert not factors.age_valid
    assert factors.age_risk == 0
    assert factors.age is None


@pytest.mark.parametrize(
    "temperature, expected",
    [(97.0, 0), (99.5, 0), (99.59, 0), (99.6, 1), (100.9, 1), (101.0, 2), (104, 2), ("102.3", 2)],
)
def test_temperature_bands(temperature, expected):
    factors = score_vitals(30, temperature, "110/70")

    assert factors.temperature_valid
    assert factors.temperature_risk == expected


@pytest.mark.parametrize("temperature", ["TEMP_ERROR", None, "", False, "99.6F"])
def test_invalid_temperature(temperature):
    factors = score_vitals(30, temperature, "110/70")

    assert not factors.temperature_valid
    assert factors.temperature_risk == 0
    assert not factors.has_fever


@pytest.mark.parametrize(
    "blood_pressure, expected",
    [
        ("145/95", 3),
        ("140/70", 3),
        ("118/92", 3),
        ("125/85", 2),
        ("135/70", 2),
        ("125/82", 2),
        ("110/80", 2),
        ("122/75", 1),
        ("129/79", 1),
        ("110/70", 0),
        ("90/60", 0),
    ],
)
def test_blood_pressure_bands(blood_pressure, expected):
    factors = score_vitals(30, 98.6, blood_pressure)

    assert factors.bp_valid
    assert factors.bp_risk == expected


@pytest.mark.parametrize(
    "blood_pressure",
    [
        "abc/70",
        None,
        "",
        "120/",
        "/80",
        "120/80/70",
        " 120/80",
        "120/80\n",
        "1200/80",
        "9/80",
        "120-80",
        "120 / 80",
        12080,
        "１２０/８０",
        "INVALID",
    ],
)
def test_invalid_blood_pressure(blood_pressure):
    factors = score_vitals(30, 98.6, blood_pressure)

    assert not factors.bp_valid
    assert factors.bp_risk == 0


def test_blood_pressure_first_matching_band_wins():
    # systolic alone would be "elevated", diastolic pushes into stage 1
    assert blood_pressure_risk(125, 82) == 2
    # diastolic alone would be normal, systolic pushes into stage 2
    assert blood_pressure_risk(150, 70) == 3


def test_parse_blood_pressure():
    assert parse_blood_pressure("120/80") == (120, 80)
    assert parse_blood_pressure("99/60") == (99, 60)
    assert parse_blood_pressure(["120/80"]) is None


@pytest.mark.parametrize(
    "value, expected",
    [
        (42, 42.0),
        (37.5, 37.5),
        ("42", 42.0),
        (" 7.25 ", 7.25),
        ("-3", -3.0),
        (10**400, None),
        ("4_5", None),
        ("1_000.5", None),
    ],
)
def test_coerce_number(value, expected):
    assert coerce_number(value) == expected


def test_high_risk_fever_patient():
    factors = score_vitals(70, 102, "150/95")

    assert (factors.age_risk, factors.temperature_risk, factors.bp_risk) == (2, 2, 3)
    assert factors.total_risk == 7
    assert factors.is_high_risk
    assert factors.has_fever
    assert not factors.has_data_quality_issue


def test_unknown_age_is_data_quality_only():
    factors = score_vitals("unknown", 98.0, "110/70")

    assert factors.total_risk == 0
    assert not factors.age_valid
    assert not factors.is_high_risk
    assert not factors.has_fever
    assert factors.has_data_quality_issue


def test_missing_all_fields():
    factors = score_vitals(None, None, None)

    assert not (factors.age_valid or factors.temperature_valid or factors.bp_valid)
    assert factors.total_risk == 0
    assert factors.has_data_quality_issue
    assert not factors.is_high_risk
    assert not factors.has_fever


def test_high_risk_threshold_is_four():
    assert score_vitals(45, 99.8, "125/85").total_risk == 4
    assert score_vitals(45, 99.8, "125/85").is_high_risk
    assert score_vitals(45, 98.6, "125/85").total_risk == 3
    assert not score_vitals(45, 98.6, "125/85").is_high_risk


def test_invalid_components_still_count_valid_ones():
    factors = score_vitals(80, "N/A", "150/100")

    assert factors.total_risk == 5
    assert factors.is_high_risk
    assert factors.has_data_quality_issue
    assert not factors.has_fever
