from __future__ import annotations

from sqlalchemy import select, update

from .models import OrphanedSubOrganization
from .sqlalchemy_manager import SQLAlchemyManager


class OrphanLedger:
    """Record sub-organizations that need out-of-band cleanup."""

    def __init__(self, manager: SQLAlchemyManager) -> None:
        self.manager = manager

    async def record(self, sub_organization_id: str, stage: str, reason: str) -> None:
        async with self.manager.get_session() as session:
            session.add(
                OrphanedSubOrganization(
                    sub_organization_id=sub_organization_id,
                    stage=stage,
                    reason=reason[:2000],
                )
            )

    async def pending(self) -> list[OrphanedSubOrganization]:
        """Orphans not yet marked as cleaned up, oldest first."""
        async with self.manager.get_session() as session:
            result = await session.execute(
                select(OrphanedSubOrganization)
                .where(OrphanedSubOrganization.cleaned_up.is_(False))
                .order_by(OrphanedSubOrganization.id)
            )
            return list(result.scalars().all())

    async def mark_cleaned(self, sub_organization_id: str) -> int:
        async with self.manager.get_session() as session:
            result = await session.execute(
                update(OrphanedSubOrganization)
                .where(OrphanedSubOrganization.sub_organization_id == sub_organization_id)
                .values(cleaned_up=True)
            )
            return result.rowcount
