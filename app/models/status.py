from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RecStatusMain(Base):
    __tablename__ = "rec_status_main"

    status_main_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    label: Mapped[str] = mapped_column(String(128))
    sort_order: Mapped[int] = mapped_column(Integer, default=0)


class RecStatusSub(Base):
    __tablename__ = "rec_status_sub"

    status_sub_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status_main_id: Mapped[int] = mapped_column(ForeignKey("rec_status_main.status_main_id"), index=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    label: Mapped[str] = mapped_column(String(128))
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
