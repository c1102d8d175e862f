from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RECIPEBOX_", env_file=".env", extra="ignore")

    recipes_path: Path = Path("data/recipes.json")
    # Static collection used when recipes_path does not exist yet
    seed_path: Path | None = None

    default_units: str = "metric"
    search_threshold: float = 0.4
    rate_limit: str = "30/minute"
    log_level: str = "INFO"


settings = Settings()
