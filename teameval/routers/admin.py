import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.core.auth import get_current_admin
from teameval.core.exceptions import TeamNotFound, UserNotFound
from teameval.database import get_db
from teameval.models.user import ManagerAssignment
from teameval.schemas.question import QuestionCreate, QuestionResponse
from teameval.schemas.team import AddMemberRequest, ManagerAssignmentCreate, TeamResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/teams/{team_id}/members", response_model=TeamResponse)
async def add_team_member(
    team_id: int,
    member_in: AddMemberRequest,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin)
):
    """Manual override: place a user in an already generated team."""
    team = await repositories.get_team(db, team_id)
    if not team:
        raise TeamNotFound(team_id)
    if not await repositories.get_user(db, member_in.user_id):
        raise HTTPException(400, "User not found")

    await repositories.add_member(db, team, member_in.user_id)
    await db.commit()

    response = TeamResponse.model_validate(team)
    response.member_ids = await repositories.team_member_ids(db, team.id)
    return response


@router.delete("/teams/{team_id}/members/{user_id}", response_model=TeamResponse)
async def remove_team_member(
    team_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin)
):
    team = await repositories.get_team(db, team_id)
    if not team:
        raise TeamNotFound(team_id)
    if not await repositories.get_user(db, user_id):
        raise UserNotFound(user_id)
    if not await repositories.remove_member(db, team.id, user_id):
        raise HTTPException(404, "User is not a member of this team")
    await db.commit()
    logger.info("Removed user %s from team %s", user_id, team.id)

    response = TeamResponse.model_validate(team)
    response.member_ids = await repositories.team_member_ids(db, team.id)
    return response


@router.post("/questions", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    question_in: QuestionCreate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin)
):
    question = await repositories.create_question(db, question_in.text, question_in.period)
    await db.commit()
    await db.refresh(question)
    return question


@router.post("/managers", status_code=status.HTTP_201_CREATED)
async def assign_manager(
    assignment_in: ManagerAssignmentCreate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin)
):
    if assignment_in.user_id == assignment_in.manager_id:
        raise HTTPException(400, "User cannot be their own manager")

    assignment = ManagerAssignment(user_id=assignment_in.user_id, manager_id=assignment_in.manager_id)
    db.add(assignment)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(409, "Manager relationship already exists")
    return {"user_id": assignment.user_id, "manager_id": assignment.manager_id}
