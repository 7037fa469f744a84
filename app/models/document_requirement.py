from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RecDocumentRequirement(Base):
    __tablename__ = "rec_document_requirement"

    document_requirement_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    step_key: Mapped[str] = mapped_column(String(32), index=True)
    # Null applies to every role.
    role_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    doc_type: Mapped[str] = mapped_column(String(64))
    label: Mapped[str] = mapped_column(String(255))
    mandatory: Mapped[bool] = mapped_column(Boolean, default=True)
