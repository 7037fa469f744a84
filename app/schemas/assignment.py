from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AssignmentNominate(BaseModel):
    candidate_id: int
    project_id: int
    role_id: Optional[int] = None
    recruiter_person_id: Optional[str] = Field(default=None, max_length=64)
    notes: Optional[str] = None


class SubStatusTransition(BaseModel):
    sub_status: str = Field(min_length=1, max_length=64)
    reason: Optional[str] = None
    notes: Optional[str] = None


class MainStatusChange(BaseModel):
    main_status: str = Field(min_length=1, max_length=64)
    sub_status: str = Field(min_length=1, max_length=64)
    reason: Optional[str] = None


class AssignmentOut(BaseModel):
    assignment_id: int
    candidate_id: int
    project_id: int
    role_id: Optional[int] = None
    recruiter_person_id: Optional[str] = None
    main_status: str
    main_status_label: str
    sub_status: str
    sub_status_label: str
    is_sent_for_document_verification: bool
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AssignmentStatusHistoryOut(BaseModel):
    assignment_status_history_id: int
    assignment_id: int
    previous_status_main_name: Optional[str] = None
    previous_status_main_label: Optional[str] = None
    previous_status_sub_name: Optional[str] = None
    previous_status_sub_label: Optional[str] = None
    status_main_name: str
    status_main_label: str
    status_sub_name: str
    status_sub_label: str
    changed_by_person_id: Optional[str] = None
    changed_by_name: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True
