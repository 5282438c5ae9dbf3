from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./clinic.db"
    DATABASE_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # Startup
    SEED_DEMO_DATA: bool = False

    # HTTP
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"


def get_settings() -> Settings:
    return Settings()
