"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.
"""

from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development.

    Environment Variables:
        DATABASE_URL: Canonical store connection string
        LOG_LEVEL: Logging level (default INFO)
        LOG_JSON: Emit JSON log lines (default True)
        MAX_UPLOAD_SIZE_BYTES: Largest admissible staging upload
        MAX_BATCH_FILES: Largest number of files per upload batch
        UPLOAD_TICK_SECONDS: Delay between two upload progress ticks
        ANALYSIS_HANDOFF_SECONDS: Delay between upload completion and analysis start
        ANALYSIS_SECONDS: Duration of the server-side analysis stage
        MAX_PROGRESS_STEP: Largest progress increment per tick (percent)
        PROGRESS_SEED: Optional seed for the progress random source
        SEED_PROJECTS: Canonical projects created on startup ("id:name,...")
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database (canonical project/file store)
    DATABASE_URL: str = "sqlite:///./regflow.db"

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Ingestion
    MAX_UPLOAD_SIZE_BYTES: int = 50 * 1024 * 1024
    MAX_BATCH_FILES: int = 20

    # Canonical projects registered on startup, as comma-separated "id:name" pairs
    SEED_PROJECTS: str = "project-001:智能听诊器 STS-2024,project-002:便携式血压仪 BP-PRO"

    # Lifecycle timings
    UPLOAD_TICK_SECONDS: float = 0.2
    ANALYSIS_HANDOFF_SECONDS: float = 0.5
    ANALYSIS_SECONDS: float = 2.0
    MAX_PROGRESS_STEP: int = 20
    PROGRESS_SEED: Optional[int] = None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()


def parse_seed_projects(value: str) -> List[Tuple[str, str]]:
    """Split a SEED_PROJECTS string into (project_id, name) pairs

    Example:
        >>> parse_seed_projects("project-001:Stethoscope, project-002")
        [('project-001', 'Stethoscope'), ('project-002', 'project-002')]
    """
    projects = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        project_id, _, name = entry.partition(":")
        project_id = project_id.strip()
        projects.append((project_id, name.strip() or project_id))
    return projects
