from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- Basic configuration ---
    APP_NAME: str = "Training Management API"
    APP_DESCRIPTION: str = "API for managing training programs, participants, enrollments and allowances"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"  # development, production, testing
    DEBUG: bool = True

    # --- Database ---
    DB_PROVIDER: str = "sqlite"  # sqlserver, mysql, postgresql, sqlite
    DB_CONNECTION_STRING: Optional[str] = None  # Full SQLAlchemy URL; overrides everything below
    DB_HOST: str = "localhost"
    DB_PORT: Optional[int] = None  # Provider default when empty
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_NAME: str = "TrainingManagementDb"
    DB_ECHO: bool = False  # Log SQL statements (sensitive data logging)

    # --- Transient fault retry (connection level) ---
    DB_ENABLE_RETRY_ON_FAILURE: bool = True
    DB_MAX_RETRY_COUNT: int = 3
    DB_MAX_RETRY_DELAY: float = 30.0  # seconds
    DB_COMMAND_TIMEOUT: int = 30  # seconds

    # --- Provider specific ---
    MYSQL_SERVER_VERSION: str = "8.0.0"
    SQLSERVER_ODBC_DRIVER: str = "ODBC Driver 18 for SQL Server"
    SQLITE_DATA_DIRECTORY: str = "Data"
    SQLITE_DATABASE_FILE: str = "TrainingManagement.db"
    SQLITE_ENABLE_FOREIGN_KEYS: bool = True

    # --- JWT ---
    JWT_SECRET: str = "YourVerySecureSecretKeyThatIsAtLeast32CharactersLong!"
    JWT_ISSUER: str = "TrainingManagementAPI"
    JWT_AUDIENCE: str = "TrainingManagementClient"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # --- Identity ---
    DEFAULT_USER_ROLE: str = "User"
    PASSWORD_MIN_LENGTH: int = 6

    # --- Cookie ---
    ACCESS_TOKEN_COOKIE_NAME: str = "access_token"
    COOKIE_SECURE: bool = False  # Set True in production (HTTPS only)
    COOKIE_SAMESITE: str = "lax"  # lax, strict, none

    # --- Logging ---
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    # --- API route prefixes ---
    API_V1_AUTH_PREFIX: str = "/api/auth"

    # --- Pydantic ---
    # Load env from project root .env; priority: env vars > .env > defaults
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )


# Singleton settings instance
settings = Settings()
