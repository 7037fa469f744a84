from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


# Canonical post-placement step keys, in processing order.
MEDICAL_CERTIFICATE = "MEDICAL_CERTIFICATE"
DOCUMENT_COLLECTION = "DOCUMENT_COLLECTION"
HRD_ATTESTATION = "HRD_ATTESTATION"
QVP = "QVP"
DATAFLOW = "DATAFLOW"
PROMETRIC = "PROMETRIC"
VISA = "VISA"
IMMIGRATION = "IMMIGRATION"
TICKETING = "TICKETING"
TRAVEL = "TRAVEL"
JOINING = "JOINING"


@dataclass(frozen=True)
class StepConfig:
    key: str
    label: str
    default_sla_days: int
    allow_not_applicable: bool = False
    requires_submission_date: bool = False


PROCESSING_STEPS: tuple[StepConfig, ...] = (
    StepConfig(MEDICAL_CERTIFICATE, "Medical Certificate", 5),
    StepConfig(DOCUMENT_COLLECTION, "Document Collection", 7),
    StepConfig(HRD_ATTESTATION, "HRD Attestation", 20, requires_submission_date=True),
    StepConfig(QVP, "QVP", 15, allow_not_applicable=True),
    StepConfig(DATAFLOW, "Dataflow", 30, allow_not_applicable=True, requires_submission_date=True),
    StepConfig(PROMETRIC, "Prometric", 10, allow_not_applicable=True),
    StepConfig(VISA, "Visa", 25, requires_submission_date=True),
    StepConfig(IMMIGRATION, "Immigration", 7),
    StepConfig(TICKETING, "Ticketing", 3),
    StepConfig(TRAVEL, "Travel", 2),
    StepConfig(JOINING, "Joining", 7),
)

PROCESSING_STEP_ORDER: tuple[str, ...] = tuple(step.key for step in PROCESSING_STEPS)

STEP_CONFIG_MAP: dict[str, StepConfig] = {step.key: step for step in PROCESSING_STEPS}


def normalize_step_key(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip().upper().replace("-", "_").replace(" ", "_")
    return normalized or None


def get_step_config(step_key: str | None) -> StepConfig | None:
    return STEP_CONFIG_MAP.get(normalize_step_key(step_key) or "")


def step_index(step_key: str) -> int:
    return PROCESSING_STEP_ORDER.index(step_key)


def next_step_key(step_key: str) -> str | None:
    index = step_index(step_key)
    if index + 1 >= len(PROCESSING_STEP_ORDER):
        return None
    return PROCESSING_STEP_ORDER[index + 1]


def allow_not_applicable(step_key: str) -> bool:
    config = get_step_config(step_key)
    return bool(config and config.allow_not_applicable)


def requires_submission_date(step_key: str) -> bool:
    config = get_step_config(step_key)
    return bool(config and config.requires_submission_date)


def compute_due_date(start: datetime, sla_days: int) -> datetime:
    return start + timedelta(days=sla_days)


def is_overdue(*, status: str, due_date: datetime | None, now: datetime) -> bool:
    """A step is overdue only while it is being worked on and its due date has passed."""
    if due_date is None:
        return False
    return status == "IN_PROGRESS" and due_date < now
