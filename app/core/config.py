from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Attendance Time Accounting"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./attendance.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    STATUS_CACHE_ENABLED: bool = False
    STATUS_CACHE_TTL: int = 30  # seconds

    # Time accounting
    BREAK_LIMIT_SECONDS: int = 30 * 60  # one 30 minute break per day
    EXPECTED_DAILY_SECONDS: int = 8 * 3600  # 8h working day

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
