from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Google Cloud Configuration
    GOOGLE_CLOUD_PROJECT: str = "your-project-id"
    GOOGLE_CLOUD_LOCATION: str = "us-central1"
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None

    # Vertex AI
    VERTEX_AI_MODEL_ID: str = "gemini-2.5-flash"
    VERTEX_AI_FALLBACK_MODELS: List[str] = ["gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro"]
    VERTEX_AI_TEMPERATURE: float = 0.7
    VERTEX_AI_TOP_P: float = 0.8
    VERTEX_AI_TOP_K: int = 40
    VERTEX_AI_MAX_OUTPUT_TOKENS: int = 8192
    VERTEX_AI_MAX_ATTEMPTS: int = 2
    VERTEX_AI_BACKOFF_SECONDS: float = 1.0
    VERTEX_AI_TIMEOUT_SECONDS: float = 60.0

    # Itinerary generation
    MAX_PROMPT_CHARS: int = 30000
    FALLBACK_MAX_DAYS: int = 7
    ITINERARY_CURRENCY: str = "INR"
    ITINERARY_CURRENCY_SYMBOL: str = "₹"

    # Firestore / Firebase
    FIRESTORE_PROJECT_ID: Optional[str] = None
    FIRESTORE_CREDENTIALS: Optional[str] = None  # path to Firestore service account json
    FIRESTORE_DATABASE_ID: Optional[str] = None  # defaults to '(default)'
    FIREBASE_SERVICE_ACCOUNT_PATH: Optional[str] = None
    USE_FIRESTORE: bool = True

    # Weather (OpenWeatherMap)
    OPENWEATHER_API_KEY: Optional[str] = None
    WEATHER_TIMEOUT_SECONDS: float = 10.0

    # API Configuration
    API_VERSION: str = "1.0.0"
    DEBUG_MODE: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Trip Planning Limits
    MAX_TRIP_DURATION_DAYS: int = 30
    MAX_GROUP_SIZE: int = 20
    MAX_BUDGET: float = 1000000.0

    model_config = {"env_file": ".env", "case_sensitive": True}

# Global settings instance
settings = Settings()

def get_settings() -> Settings:
    """Get the global settings instance"""
    return settings

def validate_settings() -> bool:
    """Validate that all required settings are configured"""
    required_settings = [
        "GOOGLE_CLOUD_PROJECT",
    ]

    missing_settings = []
    for setting in required_settings:
        if not getattr(settings, setting) or getattr(settings, setting) in ["your-project-id"]:
            missing_settings.append(setting)

    if missing_settings:
        print(f"Missing or invalid settings: {', '.join(missing_settings)}")
        print("Please configure these settings in your .env file or environment variables")
        return False

    # If FIRESTORE_PROJECT_ID not set, fallback to GOOGLE_CLOUD_PROJECT (but allow split-projects)
    if not settings.FIRESTORE_PROJECT_ID:
        settings.FIRESTORE_PROJECT_ID = settings.GOOGLE_CLOUD_PROJECT

    return True

def candidate_model_ids(primary: Optional[str] = None) -> List[str]:
    """Ordered, de-duplicated list of Vertex model ids to try (configured model first)."""
    ordered = [primary or settings.VERTEX_AI_MODEL_ID, *settings.VERTEX_AI_FALLBACK_MODELS]
    seen = set()
    out: List[str] = []
    for model_id in ordered:
        if model_id and model_id not in seen:
            seen.add(model_id)
            out.append(model_id)
    return out
