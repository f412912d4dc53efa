"""SQLAlchemy ORM models for the orphan ledger."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    pass


class OrphanedSubOrganization(Base):
    """A sub-organization left behind by a registration that failed part way."""

    __tablename__ = "orphaned_sub_organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sub_organization_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    stage: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    cleaned_up: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
