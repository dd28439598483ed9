from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"
    log_level: str = "INFO"

    # Backend
    api_base_url: str = "http://localhost:5000/api"
    api_token: str | None = None
    token_cookie: str = "token"
    login_url: str = "/auth"
    request_timeout: float = 30.0

    # Public links and relative asset references (/uploads/...) are joined onto these.
    public_base_url: str = "http://localhost:8000"
    asset_base_url: str = "http://localhost:5000"

    # Signed storage URLs expire after an hour on the backend; refresh a bit earlier.
    signed_url_ttl_seconds: int = 45 * 60

    # Unsaved editor sessions idle longer than this are dropped.
    editor_session_ttl_seconds: int = 12 * 60 * 60
    # Downloaded images untouched for this long are removed from the disk cache.
    image_cache_max_age_seconds: int = 7 * 24 * 60 * 60

    # Rendering
    fonts_dir: str = "assets/fonts"
    preview_widths: dict[str, int] = {
        "story": 280,
        "post": 350,
    }
    thumbnail_width: int = 120
    public_width: int = 448


settings = Settings()
