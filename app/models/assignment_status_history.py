from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RecAssignmentStatusHistory(Base):
    """
    Append-only record of assignment status changes.

    Names and labels are copied at write time so rows stay readable after catalog edits.
    """

    __tablename__ = "rec_assignment_status_history"

    assignment_status_history_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(Integer, index=True)

    previous_status_main_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    previous_status_main_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    previous_status_main_label: Mapped[str | None] = mapped_column(String(128), nullable=True)
    previous_status_sub_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    previous_status_sub_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    previous_status_sub_label: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status_main_id: Mapped[int] = mapped_column(Integer)
    status_main_name: Mapped[str] = mapped_column(String(64))
    status_main_label: Mapped[str] = mapped_column(String(128))
    status_sub_id: Mapped[int] = mapped_column(Integer)
    status_sub_name: Mapped[str] = mapped_column(String(64), index=True)
    status_sub_label: Mapped[str] = mapped_column(String(128))

    changed_by_person_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    changed_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
