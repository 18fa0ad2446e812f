from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teameval.core.auth import get_current_admin, get_current_identity
from teameval.database import get_db
from teameval.schemas.score import RankedResult
from teameval.schemas.team import PeriodFields
from teameval.services import results

router = APIRouter(prefix="/results", tags=["results"])


@router.get("", response_model=RankedResult)
async def get_results(
    fields: PeriodFields = Depends(),
    db: AsyncSession = Depends(get_db),
    identity=Depends(get_current_identity)
):
    return await results.get_ranking(db, fields.period)


@router.post("/recompute", response_model=RankedResult)
async def recompute_results(
    fields: PeriodFields,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin)
):
    return await results.recompute(db, fields.period)
