"""Domain errors raised by the team formation and scoring engine.

Uniqueness and precondition violations are raised as these typed errors so
callers can branch on them. Unexpected storage failures are not wrapped and
propagate unchanged as SQLAlchemy exceptions.
"""


class TeamEvalError(Exception):
    """Base class for every domain error."""


class ConfigurationError(TeamEvalError):
    """Invalid configuration detected at startup."""


# ---------------------------------------------------------------------------
# Team generation
# ---------------------------------------------------------------------------
class GenerationError(TeamEvalError):
    pass


class AlreadyFormed(GenerationError):
    """Teams already exist for the period. Callers treat it as "already done"."""

    def __init__(self, period_key: str, message: str | None = None):
        self.period_key = period_key
        super().__init__(message or f"Teams already exist for period {period_key}")


class ConcurrentGeneration(AlreadyFormed):
    """Another generation run for the same period won the insert race."""

    def __init__(self, period_key: str):
        super().__init__(
            period_key,
            f"Teams for period {period_key} were generated concurrently by another run",
        )


class InsufficientPopulation(GenerationError):
    def __init__(self, count: int, minimum: int):
        self.count = count
        self.minimum = minimum
        super().__init__(
            f"Not enough users. Need at least {minimum} users to create teams, got {count}"
        )


class DuplicateMember(TeamEvalError):
    def __init__(self, team_id: int, user_id: int):
        self.team_id = team_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} is already a member of team {team_id} or of another team in its period"
        )


class TeamNotFound(TeamEvalError):
    def __init__(self, team_id: int):
        self.team_id = team_id
        super().__init__(f"Team {team_id} not found")


# ---------------------------------------------------------------------------
# Rating submission
# ---------------------------------------------------------------------------
class RatingError(TeamEvalError):
    pass


class InvalidScore(RatingError):
    def __init__(self, score):
        self.score = score
        super().__init__("Score must be an integer between 1 and 5")


class InvalidRating(RatingError):
    """Rater/subject/source combination that can never be valid."""


class DuplicateRating(RatingError):
    def __init__(self):
        super().__init__(
            "A rating already exists for this rater, question, subject and source"
        )


class NotTeamMember(RatingError):
    pass


class QuestionNotFound(RatingError):
    def __init__(self, question_id: int):
        self.question_id = question_id
        super().__init__(f"Question {question_id} not found")


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
class ScoringError(TeamEvalError):
    """Weighted scoring could not be completed for one team."""


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class UserNotFound(TeamEvalError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class InactiveUser(TeamEvalError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} is inactive")
