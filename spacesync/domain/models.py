from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class SpaceRecord(Base):
    __tablename__ = "spaces"

    # Rows are keyed by space name and canonical environment id.
    name: Mapped[str] = mapped_column(String, primary_key=True)
    environment: Mapped[str] = mapped_column(String, primary_key=True)
    # Naive UTC, second precision; copied from the space, never from wall-clock time.
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    # Soft-delete flag (0|1); rows are never physically removed.
    decommissioned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    decommission_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    # 1 when the presence oracle still reports the space name.
    present_in_inventory: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
