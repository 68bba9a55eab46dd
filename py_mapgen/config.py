"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, read from MAPGEN_* environment variables."""

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Generation
    default_width: float = Field(default=1000.0, description="Default map width")
    default_height: float = Field(default=1000.0, description="Default map height")
    default_cells: int = Field(default=2000, description="Default number of cells")
    max_cells: int = Field(default=50000, description="Maximum number of cells")
    default_seed: str = Field(default="42", description="Seed used when none given")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log renderer: json or console")

    class Config:
        env_file = ".env"
        env_prefix = "MAPGEN_"


settings = Settings()
