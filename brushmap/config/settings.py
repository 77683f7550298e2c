import os
from typing import Optional
from dotenv import load_dotenv

from brushmap.utils.exceptions import ConfigurationError

# Load environment variables
load_dotenv()

class Settings:
    """Application configuration settings"""

    # Deployment
    DEBUG: bool = os.getenv("DEBUG", "true").lower() == "true"

    # Flask
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key")
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "5000"))
    API_VERSION: str = os.getenv("API_VERSION", "v1")

    # Cache
    USE_CACHE: bool = os.getenv("USE_CACHE", "false").lower() == "true"
    CACHE_TTL: int = int(os.getenv("CACHE_TTL", "300"))  # 5 minutes
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "600"))
    RATE_LIMIT_PER_HOUR: int = int(os.getenv("RATE_LIMIT_PER_HOUR", "36000"))  # pointer moves are chatty

    # Security
    ALLOWED_ORIGINS: list = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")

    # Database (PostGIS)
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL") or None
    DB_MIN_CONNECTIONS: int = int(os.getenv("DB_MIN_CONNECTIONS", "2"))
    DB_MAX_CONNECTIONS: int = int(os.getenv("DB_MAX_CONNECTIONS", "20"))

    # Brush sizing (km). Freehand drawing and the boundary re-editor use different floors.
    BRUSH_FREEHAND_MIN_KM: float = float(os.getenv("BRUSH_FREEHAND_MIN_KM", "0.1"))
    BRUSH_FREEHAND_MAX_KM: float = float(os.getenv("BRUSH_FREEHAND_MAX_KM", "200"))
    BRUSH_EDITOR_MIN_KM: float = float(os.getenv("BRUSH_EDITOR_MIN_KM", "1"))
    BRUSH_EDITOR_MAX_KM: float = float(os.getenv("BRUSH_EDITOR_MAX_KM", "200"))
    BRUSH_DEFAULT_VALUE: float = float(os.getenv("BRUSH_DEFAULT_VALUE", "50"))

    # Geometry engine
    CIRCLE_STEPS: int = int(os.getenv("CIRCLE_STEPS", "64"))
    STROKE_SPACING_FACTOR: float = float(os.getenv("STROKE_SPACING_FACTOR", "0.002"))
    MAX_HISTORY: int = int(os.getenv("MAX_HISTORY", "0"))  # 0 = unbounded
    SIMPLIFY_VERTEX_LIMIT: int = int(os.getenv("SIMPLIFY_VERTEX_LIMIT", "0"))  # 0 = never simplify
    SIMPLIFY_TOLERANCE_DEG: float = float(os.getenv("SIMPLIFY_TOLERANCE_DEG", "0.0005"))
    SLOW_GEOMETRY_MS: float = float(os.getenv("SLOW_GEOMETRY_MS", "16"))  # one frame

    # Editing sessions
    SESSION_TTL_SECONDS: int = int(os.getenv("SESSION_TTL_SECONDS", "3600"))

    # Containment queries: "postgis" or "memory"
    CONTAINMENT_BACKEND: str = os.getenv("CONTAINMENT_BACKEND", "postgis")

    @classmethod
    def validate(cls) -> None:
        """Validate required settings"""
        if not cls.DATABASE_URL:
            raise ConfigurationError("DATABASE_URL is required")

        if cls.CONTAINMENT_BACKEND not in ["postgis", "memory"]:
            raise ConfigurationError(f"Invalid CONTAINMENT_BACKEND: {cls.CONTAINMENT_BACKEND}")

        for low, high in [
            (cls.BRUSH_FREEHAND_MIN_KM, cls.BRUSH_FREEHAND_MAX_KM),
            (cls.BRUSH_EDITOR_MIN_KM, cls.BRUSH_EDITOR_MAX_KM),
        ]:
            if not 0 < low < high:
                raise ConfigurationError(f"Invalid brush radius bounds: {low}..{high} km")

        if cls.CIRCLE_STEPS < 32:
            raise ConfigurationError(f"CIRCLE_STEPS must be at least 32, got {cls.CIRCLE_STEPS}")

        if cls.DB_MIN_CONNECTIONS > cls.DB_MAX_CONNECTIONS:
            raise ConfigurationError("DB_MIN_CONNECTIONS cannot exceed DB_MAX_CONNECTIONS")

# Create singleton instance
settings = Settings()
