"""
Application configuration
Reads settings from environment variables
"""
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Vet Clinic Recommendation Service"
    DEBUG: bool = False
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Database
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "root"
    DB_NAME: str = "vetclinic"

    # SSL
    SSL_ENABLED: bool = False
    SSL_KEY_PATH: Optional[str] = "/certs/privkey.pem"
    SSL_CERT_PATH: Optional[str] = "/certs/fullchain.pem"

    # Recommendations
    RECOMMENDATION_LIMIT: int = 10
    KNN_N_NEIGHBORS: int = 5
    KNN_SIMILARITY_THRESHOLD: float = 0.2
    KNN_MAX_NEIGHBORS: int = 50  # Upper bound for the k query parameter

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL"""
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def DATABASE_URL_SYNC(self) -> str:
        """Construct sync database URL (for Alembic migrations)"""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
