from __future__ import annotations

from enum import Enum


class MainStatus(str, Enum):
    NOMINATED = "nominated"
    DOCUMENTS = "documents"
    INTERVIEW = "interview"
    PROCESSING = "processing"
    FINAL = "final"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    ON_HOLD = "on_hold"


class SubStatus(str, Enum):
    NOMINATED_INITIAL = "nominated_initial"

    PENDING_DOCUMENTS = "pending_documents"
    DOCUMENTS_SUBMITTED = "documents_submitted"
    VERIFICATION_IN_PROGRESS_DOCUMENT = "verification_in_progress_document"
    DOCUMENTS_VERIFIED = "documents_verified"
    DOCUMENTS_RE_SUBMISSION_REQUESTED = "documents_re_submission_requested"
    REJECTED_DOCUMENTS = "rejected_documents"

    INTERVIEW_ASSIGNED = "interview_assigned"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_RESCHEDULED = "interview_rescheduled"
    INTERVIEW_COMPLETED = "interview_completed"
    INTERVIEW_PASSED = "interview_passed"
    INTERVIEW_FAILED = "interview_failed"
    SCREENING_ASSIGNED = "screening_assigned"
    SCREENING_SCHEDULED = "screening_scheduled"
    SCREENING_COMPLETED = "screening_completed"
    SCREENING_PASSED = "screening_passed"
    SCREENING_FAILED = "screening_failed"
    TRAINING_ASSIGNED = "training_assigned"
    TRAINING_IN_PROGRESS = "training_in_progress"
    TRAINING_COMPLETED = "training_completed"
    READY_FOR_REASSESSMENT = "ready_for_reassessment"
    INTERVIEW_SELECTED = "interview_selected"

    TRANSFERRED_TO_PROCESSING = "transfered_to_processing"
    PROCESSING_IN_PROGRESS = "processing_in_progress"
    PROCESSING_COMPLETED = "processing_completed"
    PROCESSING_FAILED = "processing_failed"
    READY_FOR_FINAL = "ready_for_final"

    HIRED = "hired"

    REJECTED_INTERVIEW = "rejected_interview"
    REJECTED_SELECTION = "rejected_selection"

    WITHDRAWN = "withdrawn"

    ON_HOLD = "on_hold"


class InterviewOutcome(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    PASSED = "passed"
    FAILED = "failed"
    NO_SHOW = "no-show"


# Interview history rows use the outcome vocabulary plus this marker for metadata-only edits.
INTERVIEW_HISTORY_UPDATED = "updated"
# Null outcome is reported as pending; it never counts as completed.
INTERVIEW_OUTCOME_PENDING = "pending"


class InterviewMode(str, Enum):
    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in-person"


class ProcessingStepStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    REJECTED = "REJECTED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


STEP_COMPLETE_STATUSES: frozenset[ProcessingStepStatus] = frozenset(
    {ProcessingStepStatus.DONE, ProcessingStepStatus.NOT_APPLICABLE}
)


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


# Catalog rows: key -> (label, sort order).
MAIN_STATUS_CATALOG: dict[MainStatus, tuple[str, int]] = {
    MainStatus.NOMINATED: ("Nominated", 1),
    MainStatus.DOCUMENTS: ("Documents", 2),
    MainStatus.INTERVIEW: ("Interview", 3),
    MainStatus.PROCESSING: ("Processing", 4),
    MainStatus.FINAL: ("Final", 5),
    MainStatus.REJECTED: ("Rejected", 6),
    MainStatus.WITHDRAWN: ("Withdrawn", 7),
    MainStatus.ON_HOLD: ("On Hold", 8),
}

# Catalog rows: key -> (owning main status, label, sort order).
SUB_STATUS_CATALOG: dict[SubStatus, tuple[MainStatus, str, int]] = {
    SubStatus.NOMINATED_INITIAL: (MainStatus.NOMINATED, "Nominated", 1),
    SubStatus.PENDING_DOCUMENTS: (MainStatus.DOCUMENTS, "Pending Documents", 1),
    SubStatus.DOCUMENTS_SUBMITTED: (MainStatus.DOCUMENTS, "Documents Submitted", 2),
    SubStatus.VERIFICATION_IN_PROGRESS_DOCUMENT: (MainStatus.DOCUMENTS, "Verification In Progress", 3),
    SubStatus.DOCUMENTS_VERIFIED: (MainStatus.DOCUMENTS, "Verified Documents", 4),
    SubStatus.DOCUMENTS_RE_SUBMISSION_REQUESTED: (MainStatus.DOCUMENTS, "Document Re-Submission Requested", 5),
    SubStatus.REJECTED_DOCUMENTS: (MainStatus.DOCUMENTS, "Rejected Documents", 6),
    SubStatus.INTERVIEW_ASSIGNED: (MainStatus.INTERVIEW, "Interview Assigned", 1),
    SubStatus.INTERVIEW_SCHEDULED: (MainStatus.INTERVIEW, "Interview Scheduled", 2),
    SubStatus.INTERVIEW_RESCHEDULED: (MainStatus.INTERVIEW, "Interview Rescheduled", 3),
    SubStatus.INTERVIEW_COMPLETED: (MainStatus.INTERVIEW, "Interview Completed", 4),
    SubStatus.INTERVIEW_PASSED: (MainStatus.INTERVIEW, "Interview Passed", 5),
    SubStatus.INTERVIEW_FAILED: (MainStatus.INTERVIEW, "Interview Failed", 6),
    SubStatus.SCREENING_ASSIGNED: (MainStatus.INTERVIEW, "Screening Assigned", 7),
    SubStatus.SCREENING_SCHEDULED: (MainStatus.INTERVIEW, "Screening Scheduled", 8),
    SubStatus.SCREENING_COMPLETED: (MainStatus.INTERVIEW, "Screening Completed", 9),
    SubStatus.SCREENING_PASSED: (MainStatus.INTERVIEW, "Screening Passed", 10),
    SubStatus.SCREENING_FAILED: (MainStatus.INTERVIEW, "Screening Failed", 11),
    SubStatus.TRAINING_ASSIGNED: (MainStatus.INTERVIEW, "Training Assigned", 12),
    SubStatus.TRAINING_IN_PROGRESS: (MainStatus.INTERVIEW, "Training In Progress", 13),
    SubStatus.TRAINING_COMPLETED: (MainStatus.INTERVIEW, "Training Completed", 14),
    SubStatus.READY_FOR_REASSESSMENT: (MainStatus.INTERVIEW, "Ready For Reassessment", 15),
    SubStatus.INTERVIEW_SELECTED: (MainStatus.INTERVIEW, "Interview Selected", 16),
    SubStatus.TRANSFERRED_TO_PROCESSING: (MainStatus.PROCESSING, "Transferred to Processing", 1),
    SubStatus.PROCESSING_IN_PROGRESS: (MainStatus.PROCESSING, "Processing In Progress", 2),
    SubStatus.PROCESSING_COMPLETED: (MainStatus.PROCESSING, "Processing Completed", 3),
    SubStatus.PROCESSING_FAILED: (MainStatus.PROCESSING, "Processing Failed", 4),
    SubStatus.READY_FOR_FINAL: (MainStatus.PROCESSING, "Ready For Final", 5),
    SubStatus.HIRED: (MainStatus.FINAL, "Hired", 1),
    SubStatus.REJECTED_INTERVIEW: (MainStatus.REJECTED, "Rejected - Interview", 1),
    SubStatus.REJECTED_SELECTION: (MainStatus.REJECTED, "Rejected - Selection", 2),
    SubStatus.WITHDRAWN: (MainStatus.WITHDRAWN, "Withdrawn", 1),
    SubStatus.ON_HOLD: (MainStatus.ON_HOLD, "On Hold", 1),
}


def parse_sub_status(raw: str | None) -> SubStatus | None:
    if raw is None:
        return None
    normalized = raw.strip().lower().replace(" ", "_")
    if not normalized:
        return None
    try:
        return SubStatus(normalized)
    except ValueError:
        return None


def is_step_complete(status: ProcessingStepStatus | str) -> bool:
    return ProcessingStepStatus(status) in STEP_COMPLETE_STATUSES
