# roulette/core/config.py
# Runtime configuration: geodata endpoints, wheel/history bounds, persistence.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Restaurant Roulette"
    VERSION: str = "0.3.0"
    BRIEF_DESCRIPTION: str = "Finds nearby restaurants, puts up to eight of them on a wheel and spins it."

    ENV: str = Field("development", description="Application environment (e.g., production, development)")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # --- Geodata (Overpass) ---
    OVERPASS_URL: str = Field("https://overpass-api.de/api/interpreter", description="Overpass interpreter endpoint")
    OVERPASS_TIMEOUT: float = 30.0 # seconds, client side
    OVERPASS_QUERY_TIMEOUT: int = 25 # seconds, server side [timeout:N]
    OVERPASS_MAX_RETRIES: int = 2
    OVERPASS_INITIAL_BACKOFF: float = 1.0 # seconds
    AMENITY: str = Field("restaurant", description="Value of the amenity tag to search for")

    # --- Location lookup (Nominatim) ---
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODE_TIMEOUT: float = 10.0 # seconds
    USER_AGENT: str = "RestaurantRoulette/0.3 (+https://github.com/restaurant-roulette)"

    # --- Map links ---
    OSM_BASE_URL: str = "https://www.openstreetmap.org"
    MAP_ZOOM: int = 18

    # --- Wheel & history bounds ---
    WHEEL_SIZE: int = 8
    HISTORY_LIMIT: int = 20
    # Pause between data ready and wheel reveal; 0 disables it
    REVEAL_DELAY_SECONDS: float = 2.0

    # --- User setting defaults ---
    DEFAULT_SEARCH_RADIUS_MILES: float = 0.5
    DEFAULT_PRICE_RANGE: str = "2,3"
    DEFAULT_DIETARY_FILTER: str = ""

    # --- Persistence ---
    STORE_PATH: str = Field("~/.restaurant_roulette.json", description="Settings/history file used when Redis is disabled")
    ENABLE_REDIS: bool = Field(False, description="Persist settings and history in Redis instead of process memory")
    REDIS_URL: Optional[str] = Field(None, description="Redis URL, e.g. redis://localhost:6379/0")
    REDIS_KEY_PREFIX: str = "roulette:"

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
