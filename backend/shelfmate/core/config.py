from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./shelfmate.db"

    # JWT
    JWT_SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"

    # CORS - can be JSON string or comma-separated string
    CORS_ORIGINS: str = '["http://localhost:3000", "http://localhost:5173"]'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Import reconciliation
    IMPORT_BATCH_SIZE: int = 100  # Statements per atomic chunk
    FUZZY_MATCH_THRESHOLD: float = 0.85

    # Recommendations
    RECOMMENDATION_LIMIT: int = 10

    model_config = SettingsConfigDict(
        # Load from backend/.env (relative to this file's parent's parent)
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL or self.DATABASE_URL.strip() == "":
            raise RuntimeError(
                "DATABASE_URL is not set. Create backend/.env with DATABASE_URL=sqlite:///./shelfmate.db"
            )

        if self.ENVIRONMENT == "production" and self.JWT_SECRET_KEY == "your-secret-key-change-in-production":
            raise RuntimeError(
                "JWT_SECRET_KEY is still the development placeholder. Set a real secret in backend/.env"
            )

        if self.IMPORT_BATCH_SIZE < 1:
            raise RuntimeError("IMPORT_BATCH_SIZE must be at least 1")

        if not 0.0 < self.FUZZY_MATCH_THRESHOLD <= 1.0:
            raise RuntimeError("FUZZY_MATCH_THRESHOLD must be in (0, 1]")

    def get_masked_database_url(self) -> str:
        """Return DATABASE_URL with password masked for logging."""
        try:
            from urllib.parse import urlparse, urlunparse
            parsed = urlparse(self.DATABASE_URL)
            if not parsed.password:
                return self.DATABASE_URL
            masked_netloc = f"{parsed.username}:***@{parsed.hostname}"
            if parsed.port:
                masked_netloc += f":{parsed.port}"
            return urlunparse((
                parsed.scheme,
                masked_netloc,
                parsed.path,
                parsed.params,
                parsed.query,
                parsed.fragment
            ))
        except ValueError:
            return f"{self.DATABASE_URL.split('://')[0]}://<masked>"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS from JSON string or comma-separated string."""
        if not self.CORS_ORIGINS:
            return ["http://localhost:3000", "http://localhost:5173"]

        try:
            parsed = json.loads(self.CORS_ORIGINS)
            if isinstance(parsed, list):
                return parsed
            return [str(parsed)]
        except (json.JSONDecodeError, TypeError):
            origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
            return origins if origins else ["http://localhost:3000", "http://localhost:5173"]


settings = Settings()
