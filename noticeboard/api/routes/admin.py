"""Admin-only notice views.

GET /api/portal/notices/summary        — total, pending, overdue counters
GET /api/portal/notices/all            — every notice with status breakdown
GET /api/portal/notices/monthly-stats  — completions per month (live + archived)
GET /api/portal/notices/delay-report   — late responses per recipient
"""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from noticeboard.api.deps import get_current_identity, get_projections
from noticeboard.core.policies import Identity
from noticeboard.notices.projections import ProjectionEngine

router = APIRouter(prefix="/api/portal/notices", tags=["admin"])


@router.get("/summary", summary="Aggregate notice counters")
def get_summary(
    identity: Identity = Depends(get_current_identity),
    projections: ProjectionEngine = Depends(get_projections),
):
    return asdict(projections.summary(identity))


@router.get("/all", summary="All notices with status breakdown")
def get_all_notices(
    identity: Identity = Depends(get_current_identity),
    projections: ProjectionEngine = Depends(get_projections),
):
    return [asdict(row) for row in projections.all_notices(identity)]


@router.get("/monthly-stats", summary="Completed responses per month")
def get_monthly_stats(
    identity: Identity = Depends(get_current_identity),
    projections: ProjectionEngine = Depends(get_projections),
):
    return [asdict(row) for row in projections.monthly_stats(identity)]


@router.get("/delay-report", summary="Delayed responses per recipient")
def get_delay_report(
    identity: Identity = Depends(get_current_identity),
    projections: ProjectionEngine = Depends(get_projections),
):
    return [asdict(row) for row in projections.delay_report(identity)]
