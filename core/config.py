"""
REPCOACH Configuration

Environment variables and engine settings.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "REPCOACH"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://10.0.2.2:8000"]

    # Sessions
    MAX_SESSIONS: int = 100

    # Rep engine
    HISTORY_SIZE: int = 8            # Frames averaged by the keypoint smoother
    COOLDOWN_FRAMES: int = 10        # Frames after a counted rep with no transitions
    FRAMES_TO_BE_READY: int = 5      # Consecutive frames in start position before counting
    MIN_CONFIDENCE: float = 0.5      # Minimum average confidence for a usable frame
    KEYPOINT_MIN_SCORE: float = 0.3  # Minimum score for a single joint to be trusted
    PARTIAL_REP_MARGIN: float = 15.0 # Degrees below the up threshold that flag a partial rep

    # Voice feedback
    SPEECH_COOLDOWN_MS: int = 2500
    SPEECH_RATE: float = 0.9

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
