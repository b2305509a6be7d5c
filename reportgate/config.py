"""Pydantic Settings loaded from environment."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend_url: str = ""
    backend_api_key: str = ""
    cloudinary_cloud_name: str = ""
    cloudinary_upload_preset: str = "ml_default"
    media_folder: str = "reportes"
    media_base_url: str = ""
    upload_dir: str = "/tmp/reportgate-uploads"
    similar_radius_meters: int = 100
    similar_lookback_hours: int = 24
    similar_max_results: int = 10
    max_open_sessions: int = 1000
    auto_share_reports: bool = False
    auto_share_visibility: str = "public"
    http_timeout_seconds: float = 30.0
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def backend_configured(self) -> bool:
        return bool(self.backend_url and self.backend_api_key)


settings = Settings()
