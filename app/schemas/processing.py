from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.statuses import ProcessingStepStatus


class GateEvaluation(BaseModel):
    step_key: str
    total_required: int
    verified_count: int
    missing_count: int
    missing_labels: List[str]
    submission_required: bool
    has_submission: bool
    ready: bool

    def missing_reasons(self) -> list[str]:
        reasons = [f"Document not verified: {label}" for label in self.missing_labels]
        if self.submission_required and not self.has_submission:
            reasons.append("Submission date not recorded")
        return reasons


class StepStatusUpdate(BaseModel):
    status: ProcessingStepStatus
    notes: Optional[str] = None
    not_applicable_reason: Optional[str] = None


class SubmitDateIn(BaseModel):
    submitted_at: datetime
    notes: Optional[str] = None


class CancelStepIn(BaseModel):
    reason: str = Field(min_length=1)


class VerifyDocumentIn(BaseModel):
    document_id: int
    notes: Optional[str] = None


class RejectVerificationIn(BaseModel):
    reason: str = Field(min_length=1)


class ProcessingStepOut(BaseModel):
    processing_step_id: int
    assignment_id: int
    step_key: str
    label: str
    status: str
    sla_days: int
    allow_not_applicable: bool
    requires_submission_date: bool
    due_date: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None
    not_applicable_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_overdue: bool = False


class ProcessingDetailOut(BaseModel):
    assignment_id: int
    steps: List[ProcessingStepOut]
    current_step_key: Optional[str] = None
    completed_count: int
    total_count: int
    progress_percent: float


class ProcessingHistoryOut(BaseModel):
    processing_history_id: int
    assignment_id: int
    processing_step_id: int
    step_key: str
    previous_status: Optional[str] = None
    new_status: str
    changed_by_person_id: Optional[str] = None
    changed_by_name: Optional[str] = None
    notes: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True


class DocumentVerificationOut(BaseModel):
    document_verification_id: int
    assignment_id: int
    document_id: int
    doc_type: str
    step_key: Optional[str] = None
    is_processing_copy: bool
    status: str
    verified_by_person_id: Optional[str] = None
    verified_by_name: Optional[str] = None
    notes: Optional[str] = None
    verified_at: Optional[datetime] = None

    class Config:
        from_attributes = True
