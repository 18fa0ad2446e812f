from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.config import settings
from teameval.core.auth import Identity, get_current_admin, get_current_identity
from teameval.core.exceptions import AlreadyFormed
from teameval.database import get_db
from teameval.schemas.team import (
    GenerateTeamsRequest,
    GenerationResult,
    PeriodFields,
    PeriodQuery,
    ScoredTeam,
    TeamResponse,
    TeamsWithScores,
)
from teameval.services import results
from teameval.services.generation import generate_teams
from teameval.services.ranking import rank

router = APIRouter(prefix="/teams", tags=["teams"])


@router.post("/generate", response_model=GenerationResult)
async def generate(
    request: GenerateTeamsRequest,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(get_current_admin)
):
    period = request.period
    try:
        return await generate_teams(db, period, force=request.force, team_size=request.team_size)
    except AlreadyFormed as e:
        # Safe re-run: report as skipped rather than failed
        skipped = GenerationResult(period=period.key, skipped=True, message=str(e))
        return JSONResponse(status_code=409, content=skipped.model_dump())


@router.get("/me", response_model=TeamResponse)
async def get_my_team(
    fields: PeriodFields = Depends(),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    team = await repositories.team_for_user(db, identity.user_id, fields.period)
    if not team:
        raise HTTPException(404, "You are not assigned to a team for this period")

    response = TeamResponse.model_validate(team)
    response.member_ids = await repositories.team_member_ids(db, team.id)
    return response


@router.get("", response_model=TeamsWithScores)
async def list_teams_with_scores(
    query: PeriodQuery = Depends(),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Every team of the period with live scores, best first. Nothing is cached."""
    period = query.period
    ranking = rank(await results.compute_team_scores(db, period, settings.evaluation_weights))

    teams = []
    for team_score in ranking.ordered:
        teams.append(ScoredTeam(
            **dict(team_score),
            member_ids=await repositories.team_member_ids(db, team_score.team_id),
        ))
    winner = next((t for t in teams if ranking.winner and t.team_id == ranking.winner.team_id), None)
    return TeamsWithScores(period=period.key, teams=teams, winner=winner)
