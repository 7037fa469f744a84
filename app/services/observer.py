"""Extension points called by the workflows after state changes and rejected requests."""

from __future__ import annotations

import logging
from typing import Protocol

from app.schemas.processing import GateEvaluation
from app.schemas.user import ActorContext

transition_logger = logging.getLogger("sp.transitions")
bulk_logger = logging.getLogger("sp.bulk")


class TransitionObserver(Protocol):
    def after_transition(
        self,
        *,
        assignment_id: int,
        previous_sub_status: str | None,
        new_sub_status: str,
        actor: ActorContext,
    ) -> None: ...

    def after_step_change(
        self,
        *,
        assignment_id: int,
        step_key: str,
        previous_status: str | None,
        new_status: str,
        actor: ActorContext,
    ) -> None: ...

    def after_gate_failure(self, *, assignment_id: int, step_key: str, evaluation: GateEvaluation) -> None: ...

    def after_bulk_item_failure(self, *, operation: str, index: int, error: str, code: str | None) -> None: ...


class LoggingTransitionObserver:
    def after_transition(
        self,
        *,
        assignment_id: int,
        previous_sub_status: str | None,
        new_sub_status: str,
        actor: ActorContext,
    ) -> None:
        transition_logger.info(
            "assignment_status_changed",
            extra={
                "assignment_id": assignment_id,
                "from_sub_status": previous_sub_status,
                "to_sub_status": new_sub_status,
                "actor_id": actor.person_id,
            },
        )

    def after_step_change(
        self,
        *,
        assignment_id: int,
        step_key: str,
        previous_status: str | None,
        new_status: str,
        actor: ActorContext,
    ) -> None:
        transition_logger.info(
            "processing_step_changed",
            extra={
                "assignment_id": assignment_id,
                "step_key": step_key,
                "from_status": previous_status,
                "to_status": new_status,
                "actor_id": actor.person_id,
            },
        )

    def after_gate_failure(self, *, assignment_id: int, step_key: str, evaluation: GateEvaluation) -> None:
        transition_logger.info(
            "processing_gate_not_satisfied",
            extra={
                "assignment_id": assignment_id,
                "step_key": step_key,
                "missing_count": evaluation.missing_count,
                "submission_required": evaluation.submission_required,
                "has_submission": evaluation.has_submission,
            },
        )

    def after_bulk_item_failure(self, *, operation: str, index: int, error: str, code: str | None) -> None:
        bulk_logger.warning(
            "bulk_item_failed",
            extra={"operation": operation, "index": index, "error": error, "code": code},
        )


default_observer: TransitionObserver = LoggingTransitionObserver()
