# webapp/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, List
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    # Platform backend REST API
    API_BASE_URL: str = "http://localhost:3001"
    FRONTEND_URL: str = "http://localhost:3000"
    REQUEST_TIMEOUT_SECONDS: float = 15.0
    # How often an open request checks whether its client went away
    DISCONNECT_POLL_SECONDS: float = 0.25

    # Access tokens are issued by the backend and shared with this app
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"

    # Fee preview shown in the cart; the backend computes the final figures
    SERVICE_FEE_RATE: float = 0.1
    DELIVERY_FEE: float = 500.0

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file: ClassVar[str] = str(env_path)

settings = Settings()
