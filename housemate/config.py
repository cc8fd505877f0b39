from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Identity tokens (issued by the external identity service)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    PROJECT_NAME: str = "Housemate API"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Groups
    JOIN_CODE_LENGTH: int = 4
    JOIN_CODE_MAX_ATTEMPTS: int = 10
    MAX_GROUP_MEMBERS: int = 8

    # Scheduling (Monday=0 ... Sunday=6)
    WEEK_STARTS_ON: int = 6

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create a global settings instance
settings = Settings()
