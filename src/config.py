"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings

from src.biometrics.base import Category


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Biometrics Cloud"
    app_version: str = "3.0.0"
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- API access ---
    biometrics_api_key: str  # required for sync, push and debug endpoints

    # --- Google Drive (service account) ---
    google_service_account_email: str = ""
    google_private_key: str = ""

    # --- Drive folders (empty = category not synced) ---
    drive_folder_heart_rate: str = ""
    drive_folder_sleep: str = ""
    drive_folder_steps: str = ""
    drive_folder_stress: str = ""

    # --- Storage ---
    redis_url: str = ""  # empty = in-process store
    reading_ttl_seconds: int = 30 * 24 * 60 * 60  # 30 days

    # --- Sync ---
    sync_interval_seconds: int = 900  # 0 disables the background scheduler

    # --- CORS ---
    cors_origins: list[str] = ["*"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def drive_folder(self, category: Category | str) -> str | None:
        """Return the Drive folder id configured for a category, if any."""
        folder = getattr(self, f"drive_folder_{Category(category).value}", "")
        return folder or None

    @property
    def drive_folders(self) -> dict[Category, str | None]:
        return {c: self.drive_folder(c) for c in Category}


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
