# Runtime configuration for the route-drawing session service.
# Values come from the environment or a local .env file.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Walkroute"
    VERSION: str = "0.3.0"
    BRIEF_DESCRIPTION: str = "Edit-time sessions for drawing walking routes and placing spots on a map."

    ENV: str = Field("development", description="Application environment (e.g., production, development)")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # --- Kakao Local API ---
    KAKAO_REST_API_KEY: Optional[str] = Field(None, description="Kakao REST API key used for geocoding and place search")
    KAKAO_API_BASE_URL: str = Field("https://dapi.kakao.com", description="Base URL of the Kakao Local API")

    # Retry logic for provider timeouts
    GEO_LOOKUP_MAX_RETRIES: int = 2
    GEO_LOOKUP_INITIAL_BACKOFF: float = 0.5 # seconds
    GEO_LOOKUP_TIMEOUT: float = 5.0 # seconds

    # --- Place search ---
    # Kakao category group for "nearby places" around the first route point (AT4 = tourist attractions)
    NEARBY_CATEGORY_CODE: str = Field("AT4", description="Kakao category_group_code for location search")
    NEARBY_RADIUS_M: int = Field(1000, description="Radius in meters for location search (max 20000)")
    PLACE_SEARCH_SIZE: int = Field(15, description="Results per page for place searches (max 15)")

    # --- Session behaviour ---
    SEARCH_DEBOUNCE_SECONDS: float = 0.5
    RESOLVE_SEEDED_ADDRESSES: bool = Field(True, description="Reverse-geocode seeded route points when a session opens")
    MAX_OPEN_SESSIONS: int = Field(500, description="Upper bound on concurrently open sessions per process")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
