from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    # Database
    db_file: Path = Field(Path("db/kokudo_sticker.db"), alias="DB_FILE")

    # Editing: "recreate" replaces the record (new id/createdAt), "in_place" keeps both
    edit_strategy: Literal["recreate", "in_place"] = Field("recreate", alias="EDIT_STRATEGY")

    # Photos, configured in whole MB
    max_photo_size_mb: int = Field(5, alias="MAX_PHOTO_SIZE_MB")
    # Canonical bytes value used by the app (computed in post-init)
    max_photo_size: int = 5 * 1024 * 1024

    # Geocoding (OpenStreetMap Nominatim)
    geocode_url: str = Field("https://nominatim.openstreetmap.org/search", alias="GEOCODE_URL")
    geocode_limit: int = Field(5, alias="GEOCODE_LIMIT")
    geocode_timeout: float = Field(10.0, alias="GEOCODE_TIMEOUT")
    geocode_user_agent: str = Field("KokudoStickerLog/1.0", alias="GEOCODE_USER_AGENT")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    logs_dir: Path = Field(Path("logs"), alias="LOGS_DIR")
    log_file: Path = Field(Path("logs/app.log"), alias="LOG_FILE")

    # Web API
    host: str = Field("127.0.0.1", alias="HOST")
    port: int = Field(8000, alias="PORT")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False, populate_by_name=True
    )

    def model_post_init(self, __context):
        base_dir = Path(__file__).resolve().parent.parent  # project root
        def _to_abs(p: Path) -> Path:
            return p if p.is_absolute() else (base_dir / p).resolve()
        # Normalize paths relative to project root when given as relative
        self.db_file = _to_abs(self.db_file)
        self.logs_dir = _to_abs(self.logs_dir)
        self.log_file = _to_abs(self.log_file)

        if self.max_photo_size_mb is None or self.max_photo_size_mb <= 0:
            raise ValueError("MAX_PHOTO_SIZE_MB must be set to a positive integer (MB)")
        self.max_photo_size = int(self.max_photo_size_mb) * 1024 * 1024

        self.log_level = (self.log_level or "INFO").upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

        if self.geocode_limit <= 0:
            raise ValueError("GEOCODE_LIMIT must be a positive integer")


settings = Settings()
