from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RecInterviewStatusHistory(Base):
    __tablename__ = "rec_interview_status_history"

    interview_status_history_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # No FK: rows outlive a cancelled-and-deleted interview.
    interview_id: Mapped[int] = mapped_column(Integer, index=True)
    assignment_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    interview_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(String(20))
    status_snapshot: Mapped[str | None] = mapped_column(String(128), nullable=True)

    changed_by_person_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    changed_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
