"""
Centralized configuration management.
Uses environment variables with sensible defaults.
"""
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings


def _find_project_root() -> Path:
    """Find project root by looking for pyproject.toml."""
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return current.parent.parent  # Fallback: src/errorlens -> project root


class Settings(BaseSettings):
    """Application settings with validation."""

    # Project paths
    PROJECT_ROOT: Path = _find_project_root()
    DATA_DIR: Path = PROJECT_ROOT / "data"
    PROCESSED_DATA_DIR: Path = DATA_DIR / "processed"
    INDEXES_DIR: Path = DATA_DIR / "indexes"

    # Embedding configuration (vectors are supplied, never computed here)
    EMBEDDING_DIMENSION: int = 384

    # Grouping configuration
    SIMILARITY_THRESHOLD: float = 0.75
    MIN_GROUP_SIZE: int = 2
    DEFAULT_HOURS: int = 24

    # Seconds; None disables the limit
    QUERY_TIMEOUT: Optional[float] = None
    RUN_TIMEOUT: Optional[float] = None

    # Logging
    LOG_LEVEL: str = "WARNING"
    LOG_FORMAT: str = "text"  # or "json"
    LOG_FILE: Optional[Path] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
