from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.core.auth import get_current_identity
from teameval.database import get_db
from teameval.schemas.question import QuestionResponse
from teameval.schemas.team import PeriodFields

router = APIRouter(prefix="/questions", tags=["questions"])


@router.get("", response_model=list[QuestionResponse])
async def list_questions(
    fields: PeriodFields = Depends(),
    db: AsyncSession = Depends(get_db),
    identity=Depends(get_current_identity)
):
    return await repositories.questions_for_period(db, fields.period)
