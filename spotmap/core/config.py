# Service configuration: query limits, rate limiting, CORS, cache headers
# and the client-side debounce delays.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Spot Map Directory"
    VERSION: str = "0.2.0"
    BRIEF_DESCRIPTION: str = "Bounded, searchable, paginated listings of outdoor training spots for a map-centric client."

    ENV: str = Field("development", description="Application environment (e.g., production, development)")

    # --- Data store ---
    DATABASE_URL: str = Field("sqlite:///./spots.db", description="SQLAlchemy URL of the spot record store")
    SPOTS_SEED_FILE: Optional[str] = Field(None, description="JSON dataset imported at startup when the store is empty")
    QUERY_TIMEOUT_SECONDS: float = Field(10.0, description="Upper bound for a single store query")
    SPOTS_INCLUDE_TOTAL: bool = Field(False, description="Run the secondary count query and return pagination.total")

    # --- Query parameter bounds ---
    DEFAULT_PAGE_LIMIT: int = 100
    MAX_PAGE_LIMIT: int = 500
    MAX_SEARCH_LENGTH: int = 200

    # --- Rate limiting (fixed window) ---
    RATE_LIMIT_REQUESTS: int = Field(100, description="Requests allowed per identifier per window")
    RATE_LIMIT_WINDOW_MS: int = Field(60_000, description="Fixed window length in milliseconds")
    RATE_LIMIT_SWEEP_SECONDS: float = Field(300.0, description="Interval between expired-entry sweeps")
    ENABLE_REDIS: bool = Field(False, description="Keep rate-limit counters in Redis instead of process memory")
    REDIS_URL: Optional[str] = Field(None, description="Redis URL for shared rate-limit counters")

    # --- CORS ---
    CORS_ALLOWED_ORIGINS: List[str] = Field(default_factory=list, description="Exact origins allowed to read responses")
    CORS_DEV_HOST: str = Field("localhost", description="Host accepted on any port while ENV is development")
    CORS_PREFLIGHT_MAX_AGE: int = Field(86400, description="Access-Control-Max-Age for preflight responses (seconds)")

    # --- Response caching ---
    CACHE_CONTROL: str = "public, s-maxage=60, stale-while-revalidate=300"

    # --- Client-side sync ---
    BOUNDS_DEBOUNCE_MS: int = 500
    URL_DEBOUNCE_MS: int = 300

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
