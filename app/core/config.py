from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    project_name: str = "Daisy Date Planner API"
    api_v1_prefix: str = "/api/v1"

    openai_api_key: str = Field(default="", description="Optional OpenAI API key")
    openai_model_planning: str = "gpt-4.1"
    openai_model_chat: str = "gpt-4.1-mini"
    llm_timeout_seconds: float = 60.0

    google_places_api_key: str | None = None
    google_routes_api_key: str | None = None
    tmap_api_key: str | None = None
    kakao_rest_api_key: str | None = None
    http_timeout_seconds: float = 10.0

    # Tried in order until one returns a route.
    route_providers: List[str] = Field(default_factory=lambda: ["tmap", "google", "kakao"])

    search_results_per_query: int = 3
    nearby_radius_meters: int = 2000
    nearby_limit: int = 50

    supabase_url: str | None = None
    supabase_anon_key: str | None = None

    use_supabase: bool = False

    cache_ttl_days: int = 7
    session_ttl_days: int = 30
    session_cookie_name: str = "session_id"

    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
