"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Event E-Pass"
    debug: bool = False
    log_dir: str = ""  # Empty means ~/.logs/epass

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./epass.db"
    db_statement_timeout_ms: int = 8000  # Postgres only

    # Staff authentication
    staff_login_password: str = ""
    staff_token_secret: str = ""
    staff_token_ttl_minutes: int = 15

    # Registration
    registration_prefix: str = "UP25"

    # Abuse limits on public lookups
    find_pass_rate_limit: int = 10  # Requests per client IP per window, 0 disables
    find_pass_rate_window_seconds: float = 60.0
    max_scan_payload_bytes: int = 1024  # verify and check-in bodies

    # Read caches
    settings_cache_ttl_seconds: float = 10.0
    stats_cache_ttl_seconds: float = 15.0

    # Cloudinary image host
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "digital-pass/profiles"

    # Google Sheets export
    google_credentials: str = ""  # Service account JSON
    google_sheet_id: str = ""
    google_sheet_name: str = "Registrations"
    sheets_sync_interval_minutes: int = 0  # 0 disables the background export
    export_timezone: str = "Asia/Kolkata"

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    @property
    def sheets_configured(self) -> bool:
        return bool(self.google_credentials and self.google_sheet_id)


settings = Settings()


def get_settings() -> Settings:
    """Dependency returning the process settings."""
    return settings
