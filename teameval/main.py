# teameval/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy import exc as sa_exc

from teameval.config import settings
from teameval.core.exceptions import (
    AlreadyFormed,
    DuplicateMember,
    DuplicateRating,
    NotTeamMember,
    QuestionNotFound,
    TeamEvalError,
    TeamNotFound,
    UserNotFound,
)
from teameval.database import Base, engine
from teameval.models import analytics_cache, question, rating, score_snapshot, team, user  # noqa: F401  (register tables)
from teameval.routers import admin, dashboard, questions, ratings, results, teams

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Bad weights must stop the process here, not fail a request later
weights = settings.evaluation_weights
logger.info("Evaluation weights: self=%s peer=%s manager=%s", weights.self, weights.peer, weights.manager)

app = FastAPI(title="TeamEval - Team Formation & Peer Evaluation", version="1.0")

# Include Routers
app.include_router(teams.router)
app.include_router(questions.router)
app.include_router(ratings.router)
app.include_router(results.router)
app.include_router(admin.router)
app.include_router(dashboard.router)

_STATUS_BY_ERROR = [
    (AlreadyFormed, 409),
    (DuplicateRating, 409),
    (DuplicateMember, 409),
    (NotTeamMember, 403),
    (QuestionNotFound, 404),
    (TeamNotFound, 404),
    (UserNotFound, 404),
]


def status_for(error: TeamEvalError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 400


@app.exception_handler(TeamEvalError)
async def domain_error_handler(request: Request, error: TeamEvalError):
    return JSONResponse(status_code=status_for(error), content={"detail": str(error)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, error: ValidationError):
    # Raised when a period built inside an endpoint is not a real time bucket
    return JSONResponse(
        status_code=400,
        content={"detail": [e["msg"] for e in error.errors()]},
    )


@app.exception_handler(sa_exc.SQLAlchemyError)
async def storage_error_handler(request: Request, error: sa_exc.SQLAlchemyError):
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def create_tables():
    # Alembic owns the schema outside local runs; create_all only adds missing tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))


@app.get("/")
def read_root():
    return {"service": "teameval", "weights": {"self": weights.self, "peer": weights.peer, "manager": weights.manager}}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("teameval.main:app", host="0.0.0.0", port=8000, reload=True)
