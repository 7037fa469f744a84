from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RecProjectRole(Base):
    __tablename__ = "rec_project_role"

    role_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True)
    designation: Mapped[str] = mapped_column(String(255))
    headcount: Mapped[int | None] = mapped_column(Integer, nullable=True)
