"""Per-institution plan distribution and estimated revenue for super admins."""

from __future__ import annotations

from collections import Counter

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.db.models.core import CoachingCenter, School, Student, Subscription
from studybuddy.domain.models import InstitutionStats, StatsReport
from studybuddy.domain.plans import PLAN_CATALOG, PlanTier


class InstitutionStatsService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def collect(self) -> StatsReport:
        schools = list((await self.session.execute(select(School).order_by(School.id))).scalars())
        centers = list(
            (await self.session.execute(select(CoachingCenter).order_by(CoachingCenter.id))).scalars()
        )
        return StatsReport(
            schools=[await self._stats_for("school", school) for school in schools],
            coaching_centers=[await self._stats_for("coaching", center) for center in centers],
        )

    async def _stats_for(self, kind: str, institution: School | CoachingCenter) -> InstitutionStats:
        membership = Student.school_id if kind == "school" else Student.coaching_center_id

        total_stmt = select(func.count(Student.id)).where(
            membership == institution.id, Student.is_approved.is_(True)
        )
        total = (await self.session.execute(total_stmt)).scalar_one()

        plans_stmt = (
            select(Subscription.plan)
            .join(Student, Student.id == Subscription.student_id)
            .where(membership == institution.id)
        )
        counts = Counter(
            PlanTier.parse(plan) for plan in (await self.session.execute(plans_stmt)).scalars()
        )
        revenue = sum(PLAN_CATALOG[plan].monthly_price * count for plan, count in counts.items())

        return InstitutionStats(
            id=institution.id,
            name=institution.name,
            code=institution.code,
            type=kind,
            district=institution.district,
            state=institution.state,
            total_students=total,
            starter_users=counts[PlanTier.STARTER],
            basic_users=counts[PlanTier.BASIC],
            pro_users=counts[PlanTier.PRO],
            estimated_revenue=revenue,
        )


__all__ = ["InstitutionStatsService"]
