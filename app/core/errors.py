"""Typed failures raised by the pipeline operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import status

if TYPE_CHECKING:
    from app.schemas.processing import GateEvaluation


class PipelineError(Exception):
    """Base exception for pipeline errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "pipeline_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class InvalidRequest(PipelineError):
    """Raised when a required reference is missing or cannot be resolved."""

    code = "invalid_request"


class NotFound(PipelineError):
    """Raised when an assignment, interview or step does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class SlotConflict(PipelineError):
    """Raised when an interview window overlaps an already scheduled one."""

    status_code = status.HTTP_409_CONFLICT
    code = "slot_conflict"

    def __init__(self, conflicting_interview_id: int):
        self.conflicting_interview_id = conflicting_interview_id
        super().__init__("Interview already scheduled for this time slot")

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "conflicting_interview_id": self.conflicting_interview_id}


class TerminalState(PipelineError):
    """Raised when a step is already completed or cancelled."""

    status_code = status.HTTP_409_CONFLICT
    code = "terminal_state"


class InvalidTransition(PipelineError):
    code = "invalid_transition"


class GateNotSatisfied(PipelineError):
    """Raised when a step cannot be completed yet; carries what is outstanding."""

    status_code = status.HTTP_409_CONFLICT
    code = "gate_not_satisfied"

    def __init__(self, step_key: str, evaluation: GateEvaluation):
        self.step_key = step_key
        self.evaluation = evaluation
        self.reasons = evaluation.missing_reasons()
        super().__init__(f"Step {step_key} cannot be completed: " + "; ".join(self.reasons))

    def detail(self) -> dict[str, Any]:
        return {
            **super().detail(),
            "step_key": self.step_key,
            "reasons": self.reasons,
            "missing_labels": list(self.evaluation.missing_labels),
            "submission_required": self.evaluation.submission_required,
            "has_submission": self.evaluation.has_submission,
        }


class Conflict(PipelineError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class UnknownStatus(PipelineError):
    """Raised when a status key has no catalog row (configuration error)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "unknown_status"

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} status '{key}' missing in catalog")


class AlreadyInProcessing(PipelineError):
    """Signals that a processing-level copy of the document already exists for the step."""

    status_code = status.HTTP_200_OK
    code = "already_in_processing"

    def __init__(self, document_id: int, step_key: str, verification_id: int):
        self.document_id = document_id
        self.step_key = step_key
        self.verification_id = verification_id
        super().__init__(f"Document {document_id} is already in processing for {step_key}")

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "verification_id": self.verification_id, "step_key": self.step_key}
