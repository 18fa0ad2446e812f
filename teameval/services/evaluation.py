import logging
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from teameval import repositories
from teameval.core.exceptions import (
    InvalidRating,
    InvalidScore,
    NotTeamMember,
    QuestionNotFound,
)
from teameval.models.rating import Rating, RatingSource

logger = logging.getLogger(__name__)


def validate_score(score) -> int:
    # bool is an int subclass; True must not pass as a 1
    if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
        raise InvalidScore(score)
    return score


def resolve_subject(rater_id: int, subject_id: Optional[int], source: RatingSource) -> int:
    if source == RatingSource.SELF:
        if subject_id is not None and subject_id != rater_id:
            raise InvalidRating("A self rating must be about the rater")
        return rater_id
    if subject_id is None:
        raise InvalidRating(f"A {source.value} rating needs a subject")
    if subject_id == rater_id:
        raise InvalidRating(f"A {source.value} rating can't be about the rater")
    return subject_id


async def submit_rating(
    db: AsyncSession,
    rater_id: int,
    question_id: int,
    subject_id: Optional[int],
    source: Union[RatingSource, str],
    score: int,
) -> Rating:
    """
    Record one immutable rating. The caller has already checked that the
    rater is allowed to submit this source (manager ratings in particular).

    The rating is filed under the subject's team for the question's period;
    self and peer raters must belong to that team too.
    """
    score = validate_score(score)
    try:
        source = RatingSource(source)
    except ValueError:
        raise InvalidRating(f"Unknown rating source '{source}'") from None
    subject_id = resolve_subject(rater_id, subject_id, source)

    question = await repositories.get_question(db, question_id)
    if question is None:
        raise QuestionNotFound(question_id)

    team = await repositories.team_for_question(db, subject_id, question)
    if team is None:
        raise NotTeamMember(f"User {subject_id} is not assigned to a team for this question's period")
    if source != RatingSource.MANAGER and not await repositories.is_member(db, team.id, rater_id):
        raise NotTeamMember("Peer and self ratings are limited to your own team")

    rating = await repositories.insert_rating(
        db,
        rater_id=rater_id,
        question_id=question.id,
        team_id=team.id,
        subject_id=subject_id,
        source=source,
        score=score,
    )
    logger.info(
        "Rating %s recorded: rater=%s subject=%s question=%s source=%s",
        rating.id, rater_id, subject_id, question.id, source.value,
    )
    return rating
