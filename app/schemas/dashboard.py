from __future__ import annotations

from pydantic import BaseModel


class InterviewDashboardOut(BaseModel):
    this_week_count: int
    this_month_completed_count: int
    this_month_passed_count: int
    pass_rate: float
