from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RecAssignment(Base):
    """Candidate placed against one project role, carrying its current main/sub status."""

    __tablename__ = "rec_assignment"
    __table_args__ = (UniqueConstraint("candidate_id", "project_id", "role_id", name="uq_rec_assignment_triplet"),)

    assignment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(Integer, index=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True)
    role_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    recruiter_person_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    status_main_id: Mapped[int] = mapped_column(ForeignKey("rec_status_main.status_main_id"), index=True)
    status_sub_id: Mapped[int] = mapped_column(ForeignKey("rec_status_sub.status_sub_id"), index=True)

    is_sent_for_document_verification: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
