from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


DEFAULT_PROMPTS: Dict[str, str] = {
    "Anime": "Transform this photo into a vibrant anime illustration, clean line art, expressive eyes, keep the same people and pose",
    "Watercolor": "Repaint this photo as a soft watercolor painting, gentle color bleeds, paper texture, keep the same people and pose",
    "Oil": "Repaint this photo as a classical oil painting, rich brush strokes, warm lighting, keep the same people and pose",
    "Disney": "Transform this photo into a 3D animated movie character style, friendly proportions, keep the same people and pose",
}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.
    """

    # Database Configuration
    DATABASE_URL: str

    # S3-compatible storage Configuration
    S3_ENDPOINT_URL: str
    S3_ACCESS_KEY_ID: str
    S3_SECRET_ACCESS_KEY: str
    S3_BUCKET_NAME: str = "PhotoBooth"
    # e.g. https://<project>.supabase.co/storage/v1/object/public
    S3_PUBLIC_BASE_URL: Optional[str] = None

    # Leonardo Configuration
    LEONARDO_API_KEY: str = Field(..., min_length=1)
    LEONARDO_BASE_URL: str = "https://cloud.leonardo.ai/api/rest/v1"
    LEONARDO_MODEL_ID: str
    LEONARDO_STYLE_ID: str
    LEONARDO_PROMPTS: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_PROMPTS))

    # Generation pipeline
    GENERATION_POLL_INTERVAL_SECONDS: float = Field(3.0, gt=0)
    GENERATION_POLL_MAX_ATTEMPTS: int = Field(100, ge=1)
    HTTP_TIMEOUT_SECONDS: int = 60
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # Auth provider
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str

    LOG_LEVEL: str = "INFO"

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",      # Specifies the .env file to load
        env_file_encoding='utf-8',
        extra='ignore'        # Ignore extra fields that might be in the env
    )

# Create a single, globally accessible instance of the settings
settings = Settings()
