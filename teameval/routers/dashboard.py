from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teameval.core.auth import Identity, get_current_admin
from teameval.database import get_db
from teameval.schemas.analytics import (
    Dashboard,
    MonthComparison,
    MonthQuery,
    ParticipationReport,
    PerformersReport,
    TeamAveragesReport,
    UserAveragesReport,
)
from teameval.services import analytics

router = APIRouter(prefix="/admin/dashboard", tags=["dashboard"])


@router.get("", response_model=Dashboard)
async def get_dashboard(
    query: MonthQuery = Depends(),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(get_current_admin)
):
    return await analytics.dashboard(db, query.period, refresh=query.refresh)


@router.get("/participation", response_model=ParticipationReport)
async def get_participation(
    query: MonthQuery = Depends(),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(get_current_admin)
):
    return await analytics.team_participation(db, query.period, refresh=query.refresh)


@router.get("/team-averages", response_model=TeamAveragesReport)
async def get_team_averages(
    query: MonthQuery = Depends(),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(get_current_admin)
):
    return await analytics.team_average_scores(db, query.period, refresh=query.refresh)


@router.get("/user-averages", response_model=UserAveragesReport)
async def get_user_averages(
    query: MonthQuery = Depends(),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(get_current_admin)
):
    return await analytics.user_average_scores(db, query.period, refresh=query.refresh)


@router.get("/performers", response_model=PerformersReport)
async def get_performers(
    query: MonthQuery = Depends(),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(get_current_admin)
):
    return await analytics.top_bottom_performers(db, query.period, refresh=query.refresh)


@router.get("/month-comparison", response_model=MonthComparison)
async def get_month_comparison(
    query: MonthQuery = Depends(),
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(get_current_admin)
):
    return await analytics.month_comparison(db, query.period, refresh=query.refresh)
