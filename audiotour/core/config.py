# audiotour/core/config.py
# Environment-driven settings. Core services receive a Settings instance at
# construction; only the application entrypoint reads the module-level one.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "24-7 Audio Tour"
    VERSION: str = "0.2.0"
    BRIEF_DESCRIPTION: str = "Finds the most significant landmark around you and narrates its story."

    ENV: str = Field("development", description="Application environment (e.g., production, development)")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # --- Provider credentials ---
    FOURSQUARE_API_KEY: Optional[str] = Field(None, description="Foursquare Places API key (bearer token)")
    FOURSQUARE_PLACES_API_VERSION: str = Field("2025-06-17", description="Value of the X-Places-Api-Version header")
    OPENAI_API_KEY: Optional[str] = Field(None, description="OpenAI API key; narration falls back to templates without it")
    OPENAI_MODEL: str = Field("gpt-4o-mini", description="Chat model used for narration")
    OPENAI_BASE_URL: str = Field("https://api.openai.com/v1", description="OpenAI-compatible API base URL")
    PUBLIC_SOURCES_USER_AGENT: str = Field(
        "24-7-audio-tour (FastAPI service; set PUBLIC_SOURCES_USER_AGENT)",
        description="User-Agent sent to Nominatim and Wikidata, as their usage policies require",
    )

    # --- Provider endpoints ---
    FOURSQUARE_API_BASE: str = "https://places-api.foursquare.com"
    NOMINATIM_BASE_URL: str = "https://nominatim.openstreetmap.org"
    WIKIPEDIA_API_URL: str = "https://en.wikipedia.org/w/api.php"
    WIKIPEDIA_REST_URL: str = "https://en.wikipedia.org/api/rest_v1"
    WIKIDATA_API_URL: str = "https://www.wikidata.org/w/api.php"
    WIKIDATA_SPARQL_URL: str = "https://query.wikidata.org/sparql"

    # --- Timeouts (seconds) ---
    PROVIDER_TIMEOUT_SECONDS: float = Field(5.0, description="Budget for each scoring/aggregation provider call")
    PLACES_TIMEOUT_SECONDS: float = Field(8.0, description="Budget for the place search call")
    GENERATION_TIMEOUT_SECONDS: float = Field(20.0, description="Budget for the generative narration call")

    # --- Discovery & selection ---
    SEARCH_RADIUS_M: int = 1000
    SEARCH_LIMIT: int = 20
    SIGNIFICANCE_THRESHOLD: int = 30
    ENCYCLOPEDIA_RESULTS: int = 3
    KNOWLEDGE_GRAPH_RESULTS: int = 2

    # --- Generation ---
    GENERATION_TEMPERATURE: float = 0.9
    GENERATION_MAX_TOKENS: int = 450

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @property
    def has_places_credential(self) -> bool:
        return bool(self.FOURSQUARE_API_KEY and self.FOURSQUARE_API_KEY.strip())

    @property
    def has_generation_credential(self) -> bool:
        return bool(self.OPENAI_API_KEY and self.OPENAI_API_KEY.strip())

settings = Settings()
