import copy
import json

import pytest
from vitals_pipeline.scoring import (
    RiskAccumulators,
    age_risk,
    assess_record,
    blood_pressure_risk,
    classify_records,
    temperature_risk,
)


@pytest.mark.parametrize(
    "temperature,expected",
    [
        (98.6, 0),
        (99.6, 0),           # threshold itself is not a fever
        (99.7, 1),
        (100.8, 1),
        (100.9, 0),          # strict bounds on both sides leave 100.9 unscored
        (101.0, 2),
        (104, 2),
    ],
)
def test_temperature_risk(temperature, expected):
    assert temperature_risk(temperature) == expected


@pytest.mark.parametrize(
    "age,expected",
    [(0, 0), (39, 0), (40, 1), (65, 1), (66, 0), (67, 2), (90, 2)],
)
def test_age_risk(age, expected):
    assert age_risk(age) == expected


@pytest.mark.parametrize(
    "systolic,diastolic,expected",
    [
        (110, 70, 0),
        (120, 79, 1),        # elevated
        (129, 70, 1),
        (125, 85, 0),        # no band covers this combination
        (130, 80, 2),        # stage 1
        (139, 89, 2),
        (140, 90, 3),        # stage 2
        (180, 120, 3),
        (145, 85, 0),        # stage 2 needs both components
    ],
)
def test_blood_pressure_risk(systolic, diastolic, expected):
    assert blood_pressure_risk(systolic, diastolic) == expected


def test_fever_only_record_scores_temperature_two():
    a = assess_record({"patient_id": "P1", "temperature": 101, "age": 30, "blood_pressure": "110/70"})
    assert a.is_fever
    assert a.temp_risk == 2
    assert a.risk_score == 2
    acc = classify_records([{"patient_id": "P1", "temperature": 101, "age": 30, "blood_pressure": "110/70"}])
    assert acc.fever_patients == ["P1"]
    assert acc.high_risk_patients == []


def test_elderly_normal_vitals_is_not_high_risk():
    a = assess_record({"patient_id": "P2", "age": 70, "temperature": 98, "blood_pressure": "110/70"})
    assert (a.age_risk, a.temp_risk, a.blood_risk) == (2, 0, 0)
    assert a.risk_score == 2
    assert not a.is_high_risk


def test_high_risk_patient_recorded_exactly_once():
    records = [{"patient_id": "P3", "age": 70, "temperature": 101, "blood_pressure": "150/95"}]
    acc = classify_records(records)
    assert assess_record(records[0]).risk_score == 7
    assert acc.high_risk_patients == ["P3"]
    assert acc.fever_patients == ["P3"]
    assert acc.data_quality_issues == []


def test_risk_factors_do_not_carry_over_between_records():
    records = [
        {"patient_id": "HIGH", "age": 70, "temperature": 101, "blood_pressure": "150/95"},
        {"patient_id": "LOW", "age": 25, "temperature": 98.2, "blood_pressure": "110/70"},
    ]
    acc = classify_records(records)
    assert acc.high_risk_patients == ["HIGH"]
    assert assess_record(records[1]).risk_score == 0


def test_data_quality_issue_recorded_once_per_record():
    records = [
        {"patient_id": "BAD3", "age": None, "temperature": "TEMP_ERROR", "blood_pressure": "INVALID"},
        {"patient_id": "BAD1", "age": "fifty-three", "temperature": 98.6, "blood_pressure": "120/80"},
        {"patient_id": "OK", "age": 45, "temperature": 98.6, "blood_pressure": "120/70"},
    ]
    acc = classify_records(records)
    assert acc.data_quality_issues == ["BAD3", "BAD1"]
    assert assess_record(records[0]).invalid_fields == ("temperature", "age", "blood_pressure")


def test_invalid_field_does_not_block_other_factors():
    record = {"patient_id": "P4", "age": 70, "temperature": 102, "blood_pressure": "150/"}
    a = assess_record(record)
    assert a.invalid_fields == ("blood_pressure",)
    assert a.risk_score == 4
    acc = classify_records([record])
    assert acc.high_risk_patients == ["P4"]
    assert acc.fever_patients == ["P4"]
    assert acc.data_quality_issues == ["P4"]


def test_missing_fields_are_data_quality_issues():
    acc = classify_records([{"patient_id": "P5"}])
    assert acc.data_quality_issues == ["P5"]
    assert acc.fever_patients == []


def test_accumulators_keep_duplicates_across_pages():
    record = {"patient_id": "DUP", "age": 70, "temperature": 101, "blood_pressure": "150/95"}
    acc = RiskAccumulators()
    classify_records([record], acc)
    classify_records([record], acc)
    assert acc.high_risk_patients == ["DUP", "DUP"]
    assert acc.counts() == {"high_risk_patients": 2, "fever_patients": 2, "data_quality_issues": 0}


def test_non_object_records_are_skipped():
    collected = []
    acc = classify_records([None, "junk", {"patient_id": "P6", "age": 30, "temperature": 98, "blood_pressure": "110/70"}], assessments=collected)
    assert [a.patient_id for a in collected] == ["P6"]
    assert acc.to_payload() == {"high_risk_patients": [], "fever_patients": [], "data_quality_issues": []}


def test_classification_is_idempotent_and_does_not_mutate_records():
    records = [
        {"patient_id": "A", "age": 70, "temperature": 101, "blood_pressure": "150/95"},
        {"patient_id": "B", "age": 30, "temperature": 98.1, "blood_pressure": "118/76"},
        {"patient_id": "C", "age": "unknown", "temperature": 100.0, "blood_pressure": [135, 85]},
        {"patient_id": "D", "age": 55, "temperature": None, "blood_pressure": {"systolic": 125, "diastolic": 75}},
    ]
    snapshot = copy.deepcopy(records)
    first = classify_records(records).to_payload()
    second = classify_records(records).to_payload()
    assert first == second
    assert records == snapshot
    assert first == {
        "high_risk_patients": ["A"],
        "fever_patients": ["A", "C"],
        "data_quality_issues": ["C", "D"],
    }


def test_oversized_integer_is_a_data_quality_issue_not_a_crash():
    oversized = json.loads('{"patient_id": "BIG", "age": 1' + "0" * 400 + ', "temperature": 98.6, "blood_pressure": "120/70"}')
    high = {"patient_id": "HIGH", "age": 70, "temperature": 101, "blood_pressure": "150/95"}
    acc = classify_records([oversized, high])
    assert assess_record(oversized).invalid_fields == ("age",)
    assert acc.data_quality_issues == ["BIG"]
    assert acc.high_risk_patients == ["HIGH"]
