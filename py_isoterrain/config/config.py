import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings

ENV_PREFIX = "ISOTERRAIN_"

# Load .env for local runs, without overriding variables already set
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {
        k: v
        for k, v in file_env.items()
        if k.startswith(ENV_PREFIX) and k not in os.environ and v is not None
    }
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from ISOTERRAIN_* environment variables."""

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json", description="Logging format (json or console)"
    )

    # Terrain Generation Configuration
    default_width: int = Field(default=64, gt=0, description="Default grid width")
    default_amplitude: float = Field(
        default=15, gt=0, description="Default elevation noise amplitude"
    )
    default_frequency: float = Field(
        default=0.1, gt=0, description="Default noise frequency"
    )
    default_seed: Optional[str] = Field(
        default=None, description="Noise seed; unset keeps the fixed offsets"
    )

    # Output Configuration
    output_dir: str = Field(
        default="./output", description="Directory for mesh buffers and previews"
    )

    class Config:
        env_prefix = ENV_PREFIX
        extra = "ignore"


settings = Settings()
