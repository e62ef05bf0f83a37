"""
Application configuration using Pydantic settings.
"""
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ReferenceSourceConfig(BaseModel):
    """External source of reference NDVI values."""
    source: str
    name: str
    url: str
    reliability: str = "medium"
    enabled: bool = True


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    storage_backend: str = Field(
        default="file",
        description="Persistence backend: 'file' or 'memory'"
    )
    storage_dir: str = Field(
        default=".agrilens",
        description="Directory holding one JSON blob per storage key"
    )

    # Capacity limits
    max_fields: int = Field(
        default=50,
        description="Maximum number of fields"
    )
    max_directories: int = Field(
        default=10,
        description="Maximum number of directories, not counting the default one"
    )
    max_stored_results: int = Field(
        default=100,
        description="Maximum number of archived analysis results and history entries"
    )
    health_evaluator: Literal["score_average", "diagnostic"] = Field(
        default="score_average",
        description="Strategy used to evaluate analyses that arrive without an evaluation"
    )

    # Defaults for new records
    default_directory_name: str = Field(
        default="Field group 1",
        description="Name of the reserved default directory"
    )
    default_crop: str = Field(
        default="rice",
        description="Crop assigned to the default directory and legacy directories"
    )
    default_field_color: str = Field(
        default="#3b82f6",
        description="Display colour for new fields"
    )
    default_map_center: list[float] = Field(
        default=[35.089915, 138.898154],
        description="Fallback [lat, lon] centre for fields without a usable polygon"
    )

    # Export formats
    fields_export_version: str = Field(
        default="1.1",
        description="Format version written into field exports"
    )
    analysis_export_version: str = Field(
        default="1.0",
        description="Format version written into analysis exports"
    )

    # External analysis service
    external_api_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the vegetation analysis service"
    )
    external_api_key: str = Field(
        default="",
        description="API key for the analysis service"
    )
    reference_sources: list[ReferenceSourceConfig] = Field(
        default=[
            ReferenceSourceConfig(
                source="NARO",
                name="NARO agricultural data",
                url="https://agri-info.naro.go.jp/api/v1/ndvi",
                reliability="high",
            ),
            ReferenceSourceConfig(
                source="COPERNICUS",
                name="Copernicus Global Land Service",
                url="https://land.copernicus.vgt.vito.be/REST/",
                reliability="medium",
            ),
        ],
        description="Reference NDVI sources used for validation"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for API calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    analysis_rate_limit: str = Field(
        default="10/minute",
        description="Rate limit applied to the analysis endpoint"
    )

    # Application Settings
    app_name: str = Field(
        default="AgriLens Field Health",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
