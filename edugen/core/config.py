"""Application configuration settings.

This module defines the application-wide settings using Pydantic's BaseSettings.
It allows for loading configurations from environment variables and .env files,
providing type validation and default values.
"""

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Default list of CORS allowed origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "https://localhost:3000",
    "https://localhost:8000",
    "http://0.0.0.0:8000",
]

# Recognised class / grade levels and subjects for generation requests
DEFAULT_GRADE_LEVELS = [
    "Basic 7",
    "Basic 8",
    "Basic 9",
    "SHS 1",
    "SHS 2",
    "SHS 3",
]

DEFAULT_SUBJECTS = [
    "Mathematics",
    "English Language",
    "Integrated Science",
    "Social Studies",
    "Computing",
    "Biology",
    "Chemistry",
    "Physics",
    "Economics",
    "Geography",
    "History",
    "French",
    "Religious and Moral Education",
    "Career Technology",
    "Creative Arts and Design",
]


class Settings(BaseSettings):
    """Manages application settings, loading them from environment variables or an .env file.

    Attributes:
        llm_api_key: API key for the OpenAI-compatible generation endpoint.
        llm_base_url: Base URL of the OpenAI-compatible generation endpoint.
        model_id: Identifier for the language model to be used.
        llm_temperature: Sampling temperature used for generation calls.
        llm_max_tokens: Upper bound on tokens produced by a single generation call.
        database_url: SQLAlchemy URL of the relational store.
        api_key: General API key for securing internal API endpoints.
        cors_allowed_origins: List of allowed origins for CORS.
        grade_levels: Recognised class / grade levels.
        subjects: Recognised subjects.
        lesson_plan_history_limit: Number of lesson plans returned by the history endpoint.
        presign_expiry_seconds: Lifetime of presigned upload URLs.
        LLM_CONNECT_TIMEOUT: LLM client connect timeout in seconds.
        LLM_READ_TIMEOUT: LLM client read timeout in seconds.
    """

    llm_api_key: str | None = Field(default=None)
    llm_base_url: str = Field(default="https://api.mistral.ai/v1")
    model_id: str = Field(default="mistral-large-latest")
    llm_temperature: float = Field(default=0.3)
    llm_max_tokens: int = Field(default=4000)

    database_url: str = Field(default="sqlite:///./edugen.db")

    api_key: str | None = Field(default=None)

    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
    )

    grade_levels: list[str] = Field(default_factory=lambda: list(DEFAULT_GRADE_LEVELS))
    subjects: list[str] = Field(default_factory=lambda: list(DEFAULT_SUBJECTS))

    lesson_plan_history_limit: int = Field(default=10)
    presign_expiry_seconds: int = Field(default=900)

    LLM_CONNECT_TIMEOUT: float = Field(default=10.0, description="LLM client connect timeout in seconds.")
    LLM_READ_TIMEOUT: float = Field(default=180.0, description="LLM client read timeout in seconds.")

    aws_access_key_id: str | None = Field(default=None)
    aws_secret_access_key: str | None = Field(default=None)
    aws_region: str = Field(default="eu-north-1")
    s3_bucket_name: str | None = Field(default=None)

    model_config = {
        "env_file": ".env",
        "protected_namespaces": ("settings_",),
        "env_prefix": "",  # No prefix for environment variables
        "extra": "ignore",  # Ignore extra fields
    }

    @field_validator("cors_allowed_origins", mode="before")  # type: ignore
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str] | None) -> list[str]:
        """Assembles the list of CORS allowed origins.

        If 'v' is a string, it splits it by commas. If 'v' is already a list,
        it's used directly. Otherwise, returns the default list of origins.
        """
        if isinstance(v, str) and v:
            return [origin.strip() for origin in v.split(",")]
        elif isinstance(v, list):
            return v
        return list(DEFAULT_CORS_ORIGINS)


settings = Settings()
