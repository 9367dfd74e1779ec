from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables with the
    ARTCAT_ prefix (e.g. ARTCAT_DATABASE_PATH=/custom/catalog.db).
    """

    # Database
    DATABASE_PATH: Path = Path("/data/artcatalog.db")

    # Uploaded gallery images (served under /uploads)
    UPLOAD_PATH: Path = Path("/data/uploads")

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # Object store limits
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    MAX_BATCH_FILES: int = 50
    ALLOWED_IMAGE_TYPES: set[str] = {
        "image/jpeg", "image/png", "image/gif",
        "image/webp", "image/bmp", "image/tiff",
    }

    # Seconds before a single store call is treated as failed
    STORE_TIMEOUT: float = 30.0

    # Seconds allowed to fetch one legacy asset over HTTP during migration
    ASSET_FETCH_TIMEOUT: float = 60.0

    # Directory that local legacy asset paths are resolved against (unset: refused)
    LEGACY_ASSET_PATH: Path | None = None

    model_config = {"env_prefix": "ARTCAT_"}


settings = Settings()
