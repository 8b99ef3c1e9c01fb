from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".studybuddy" / "data"
    sqlite_filename: str = "studybuddy.db"
    auth_jwt_secret: str | None = None  # startup fails when unset
    auth_jwt_algorithm: str = "HS256"
    auth_audience: str | None = "authenticated"  # identity provider default
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    model_config = {"env_prefix": "STUDYBUDDY_"}


settings = Settings()
