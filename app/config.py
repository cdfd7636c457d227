import os
from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    # ORDS backend settings
    ORDS_BASE_URL: str = os.getenv("ORDS_BASE_URL", "http://localhost:8080/ords/schools")
    ORDS_TIMEOUT: float = 30.0

    # Maximum number of per-student marks requests in flight during a report build
    MARKS_FETCH_CONCURRENCY: int = 6

    # Pass mark sent to the student report handler when the caller gives none
    REPORT_PASS_MARK: float = 50

    # Workspaces untouched for this long are dropped together with their unsaved edits
    WORKSPACE_IDLE_MINUTES: int = 15

    # Authentication settings (tokens are issued by the identity service)
    SECRET_KEY: str = os.getenv("SECRET_KEY", "CHANGEME_SUPER_SECRET_KEY_FOR_JWT_TOKENS")
    ALGORITHM: str = "HS256"

    # CORS settings
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5000"]

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

# Create settings instance
settings = Settings()
