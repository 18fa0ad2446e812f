from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.core.auth import Identity, get_current_identity
from teameval.database import get_db
from teameval.models.rating import RatingSource
from teameval.models.user import Role
from teameval.schemas.rating import RatingCreate, RatingResponse
from teameval.services.evaluation import submit_rating

router = APIRouter(prefix="/ratings", tags=["ratings"])


async def authorize_source(db: AsyncSession, identity: Identity, rating_in: RatingCreate) -> None:
    if rating_in.source != RatingSource.MANAGER:
        return
    if identity.role not in (Role.MANAGER, Role.ADMIN):
        raise HTTPException(403, "Only managers can submit manager ratings")
    if identity.role == Role.MANAGER and rating_in.subject_id is not None:
        if not await repositories.is_manager_of(db, identity.user_id, rating_in.subject_id):
            raise HTTPException(403, "You can only rate users you manage")


@router.post("", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
async def create_rating(
    rating_in: RatingCreate,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    await authorize_source(db, identity, rating_in)
    return await submit_rating(
        db,
        rater_id=identity.user_id,
        question_id=rating_in.question_id,
        subject_id=rating_in.subject_id,
        source=rating_in.source,
        score=rating_in.score,
    )


@router.get("/me", response_model=list[RatingResponse])
async def get_my_ratings(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    return await repositories.ratings_by_rater(db, identity.user_id)
