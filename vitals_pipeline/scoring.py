"""Per-record risk classification and the run-wide result accumulators."""
from __future__ import annotations

from dataclasses import dataclass, field

from vitals_pipeline.config import HIGH_RISK_THRESHOLD
from vitals_pipeline.logger import logger
from vitals_pipeline.parsing import is_numeric, parse_blood_pressure

FEVER_THRESHOLD = 99.6
HIGH_FEVER_THRESHOLD = 100.9


def temperature_risk(temperature) -> int:
    if FEVER_THRESHOLD < temperature < HIGH_FEVER_THRESHOLD:
        return 1
    if temperature > HIGH_FEVER_THRESHOLD:
        return 2
    return 0


def is_fever(temperature) -> bool:
    return temperature > FEVER_THRESHOLD


def age_risk(age) -> int:
    if 39 < age < 66:
        return 1
    if age > 66:
        return 2
    return 0


def blood_pressure_risk(systolic, diastolic) -> int:
    risk = 0
    if 119 < systolic < 130 and diastolic < 80:
        risk = 1  # elevated
    if 129 < systolic < 140 and 79 < diastolic < 90:
        risk = 2  # stage 1 hypertension
    if systolic >= 140 and diastolic >= 90:
        risk = 3  # stage 2 hypertension
    return risk


@dataclass(frozen=True)
class RecordAssessment:
    patient_id: object
    temp_risk: int = 0
    age_risk: int = 0
    blood_risk: int = 0
    is_fever: bool = False
    invalid_fields: tuple = ()

    @property
    def risk_score(self) -> int:
        return self.blood_risk + self.age_risk + self.temp_risk

    @property
    def is_high_risk(self) -> bool:
        return self.risk_score >= HIGH_RISK_THRESHOLD

    @property
    def has_data_issue(self) -> bool:
        return bool(self.invalid_fields)

    def as_row(self) -> dict:
        return {
            "patient_id": self.patient_id,
            "temp_risk": self.temp_risk,
            "age_risk": self.age_risk,
            "blood_risk": self.blood_risk,
            "risk_score": self.risk_score,
            "is_fever": self.is_fever,
            "is_high_risk": self.is_high_risk,
            "invalid_fields": ",".join(self.invalid_fields),
        }


def assess_record(record: dict) -> RecordAssessment:
    """Score one record. Each factor starts at 0; a field that fails
    validation is listed in `invalid_fields` and contributes nothing."""
    invalid = []
    temp_r = age_r = blood_r = 0
    fever = False

    temperature = record.get("temperature")
    if is_numeric(temperature):
        fever = is_fever(temperature)
        temp_r = temperature_risk(temperature)
    else:
        invalid.append("temperature")

    age = record.get("age")
    if is_numeric(age):
        age_r = age_risk(age)
    else:
        invalid.append("age")

    bp = parse_blood_pressure(record.get("blood_pressure"))
    if bp is not None:
        blood_r = blood_pressure_risk(*bp)
    else:
        invalid.append("blood_pressure")

    return RecordAssessment(
        patient_id=record.get("patient_id"),
        temp_risk=temp_r,
        age_risk=age_r,
        blood_risk=blood_r,
        is_fever=fever,
        invalid_fields=tuple(invalid),
    )


@dataclass
class RiskAccumulators:
    """Append-only patient id lists shared across every page of a run."""

    high_risk_patients: list = field(default_factory=list)
    fever_patients: list = field(default_factory=list)
    data_quality_issues: list = field(default_factory=list)

    def add(self, assessment: RecordAssessment) -> None:
        pid = assessment.patient_id
        if assessment.is_fever:
            self.fever_patients.append(pid)
        if assessment.is_high_risk:
            self.high_risk_patients.append(pid)
        if assessment.has_data_issue:
            self.data_quality_issues.append(pid)

    def counts(self) -> dict:
        return {k: len(v) for k, v in self.to_payload().items()}

    def to_payload(self) -> dict:
        return {
            "high_risk_patients": list(self.high_risk_patients),
            "fever_patients": list(self.fever_patients),
            "data_quality_issues": list(self.data_quality_issues),
        }


def classify_records(records, accumulators: RiskAccumulators | None = None, assessments: list | None = None):
    """Classify one page of records into `accumulators` (a fresh set when None).

    When `assessments` is given, every RecordAssessment is also appended to it.
    """
    acc = accumulators if accumulators is not None else RiskAccumulators()
    for record in records:
        if not isinstance(record, dict):
            logger.warning("Skipping non-object patient record: %r", record)
            continue
        assessment = assess_record(record)
        acc.add(assessment)
        if assessments is not None:
            assessments.append(assessment)
    return acc


__all__ = [
    "FEVER_THRESHOLD",
    "HIGH_FEVER_THRESHOLD",
    "temperature_risk",
    "is_fever",
    "age_risk",
    "blood_pressure_risk",
    "RecordAssessment",
    "assess_record",
    "RiskAccumulators",
    "classify_records",
]
