"""ManaPool model: the class-wide mana balance that pays for battle hints."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class ManaPool(Base):
    __tablename__ = "mana_pools"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    course_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    current_mp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
