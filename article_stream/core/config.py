from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from article_stream.core.environment import ENV_FILES


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",")]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


def get_env_file_path() -> str | None:
    """
    Returns the first env file in the working directory, in the same order
    load_app_env searches them.

    Returns:
        str | None: Absolute path of the env file, or None if there is none.
    """
    for name in ENV_FILES:
        if Path(name).exists():
            return str(Path(name).resolve())

    return None


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=get_env_file_path(),
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "article-stream"
    ENVIRONMENT: Literal["development", "production"] = "development"

    # Frontend Configuration
    FRONTEND_HOST: str = "http://localhost:3000"

    BACKEND_CORS_ORIGINS: Annotated[list[AnyUrl] | str, BeforeValidator(parse_cors)] = (
        []
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        """
        Combines backend CORS origins with the frontend host.

        Example Input:
        - BACKEND_CORS_ORIGINS = ["http://localhost:8000/", "https://api.myapp.com"]
        - FRONTEND_HOST = "http://localhost:3000"

        Result: ["http://localhost:8000", "https://api.myapp.com", "http://localhost:3000"]
        """
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS] + [
            self.FRONTEND_HOST
        ]

    # Generation backend
    BACKEND_BASE_URL: str = "http://localhost:3001"
    GENERATION_PATH: str = "/api/visual-article"
    EVENT_PREFIX: str = "data: "

    # Seconds to wait for the connection and for each chunk.
    REQUEST_TIMEOUT_SECONDS: float = 300.0
    # Whole-generation limit; unset means no overall cap.
    GENERATION_TIMEOUT_SECONDS: float | None = None

    MAX_NORMALIZE_DEPTH: int = 5
    DEFAULT_UI_LANGUAGE: Literal["en", "zh"] = "en"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def generation_url(self) -> str:
        return self.BACKEND_BASE_URL.rstrip("/") + "/" + self.GENERATION_PATH.lstrip("/")


@lru_cache  # builds once, the first time it's asked for
def get_settings() -> Settings:
    return Settings()
