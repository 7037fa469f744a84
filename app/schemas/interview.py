from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.core.statuses import InterviewMode, InterviewOutcome


class InterviewCreate(BaseModel):
    assignment_id: int
    scheduled_time: datetime
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=24 * 60)
    interview_type: str = Field(default="client", min_length=1, max_length=50)
    mode: InterviewMode = InterviewMode.VIDEO
    meeting_link: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = None


class ProjectInterviewCreate(BaseModel):
    project_id: int
    scheduled_time: datetime
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=24 * 60)
    interview_type: str = Field(default="client", min_length=1, max_length=50)
    mode: InterviewMode = InterviewMode.VIDEO
    meeting_link: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = None


class InterviewOutcomeUpdate(BaseModel):
    outcome: Optional[InterviewOutcome] = None
    sub_status: Optional[str] = Field(default=None, max_length=64)
    reason: Optional[str] = None


class InterviewOutcomeBulkItem(InterviewOutcomeUpdate):
    interview_id: int


class InterviewReschedule(BaseModel):
    scheduled_time: datetime
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=24 * 60)
    reason: Optional[str] = None


class InterviewCancel(BaseModel):
    reason: Optional[str] = None
    delete: bool = False


class InterviewOut(BaseModel):
    interview_id: int
    assignment_id: Optional[int] = None
    project_id: Optional[int] = None
    scheduled_time: datetime
    duration_minutes: int
    interview_type: str
    mode: str
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[str] = None
    scheduled_by_person_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InterviewHistoryOut(BaseModel):
    interview_status_history_id: int
    interview_id: int
    assignment_id: Optional[int] = None
    interview_type: Optional[str] = None
    status: str
    status_snapshot: Optional[str] = None
    changed_by_person_id: Optional[str] = None
    changed_by_name: Optional[str] = None
    reason: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True


class InterviewListFilters(BaseModel):
    search: Optional[str] = None
    project_id: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @model_validator(mode="after")
    def _check_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be before date_to")
        return self


class InterviewListItem(BaseModel):
    assignment_id: int
    candidate_id: int
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    project_id: int
    project_title: Optional[str] = None
    role_id: Optional[int] = None
    role_designation: Optional[str] = None
    sub_status: str
    sub_status_label: str
    interview_id: Optional[int] = None
    scheduled_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    mode: Optional[str] = None
    meeting_link: Optional[str] = None
    outcome: Optional[str] = None
    expired: bool = False


class InterviewListPage(BaseModel):
    items: List[InterviewListItem]
    total: int
    page: int
    page_size: int
