# teameval/config.py
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

from teameval.core.exceptions import ConfigurationError

WEIGHT_TOLERANCE = 0.001


class EvaluationWeights(BaseModel):
    """Blend of self / peer / manager ratings. Must sum to 1.0."""

    self: float = 0.20
    peer: float = 0.50
    manager: float = 0.30

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_weights(self):
        # ConfigurationError is not a ValueError, so pydantic lets it through unwrapped
        for name in ("self", "peer", "manager"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"Evaluation weight '{name}' must not be negative")
        total = self.self + self.peer + self.manager
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigurationError(
                f"Evaluation weights must sum to 1.0, got {total}. "
                "Check EVAL_WEIGHT_SELF, EVAL_WEIGHT_PEER and EVAL_WEIGHT_MANAGER."
            )
        return self


class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./teameval.db")
    SQL_ECHO: bool = False

    # Team generation
    TEAM_SIZE: int = Field(4, ge=2)
    PERIOD_MODE: Literal["hourly", "monthly"] = "hourly"
    AVOID_REPEAT_PAIRINGS: bool = True

    # Admin analytics are recomputed once a cached entry is older than this
    ANALYTICS_CACHE_TTL_SECONDS: int = Field(3600, ge=0)

    # 360-degree weights, validated by evaluation_weights
    EVAL_WEIGHT_SELF: float = 0.20
    EVAL_WEIGHT_PEER: float = 0.50
    EVAL_WEIGHT_MANAGER: float = 0.30

    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.DATABASE_URL
        # Ensure asyncpg is used
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def evaluation_weights(self) -> EvaluationWeights:
        """
        Raises ConfigurationError when the weights don't add up, which is
        meant to stop the process at startup rather than at request time.
        """
        return EvaluationWeights(
            self=self.EVAL_WEIGHT_SELF,
            peer=self.EVAL_WEIGHT_PEER,
            manager=self.EVAL_WEIGHT_MANAGER,
        )


settings = Settings()
