from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "image_relay"
    db_username: str = "image_relay"
    db_password: str = "secret"
    db_pool_max_size: int = 10
    db_connect_timeout_seconds: float = 5.0

    health_store: str = "postgres"
    record_store: str = "postgres"

    upload_providers: str = "imgbb,cloudinary,imgur,postimage"
    upload_max_retries_per_provider: int = 2
    upload_timeout_seconds: float = 30.0
    upload_backoff_base_seconds: float = 1.0

    imgbb_api_key: str = ""
    cloudinary_cloud_name: str = "demo"
    cloudinary_upload_preset: str = "ml_default"
    imgur_client_id: str = ""
    postimage_upload_url: str = "https://postimages.org/api/upload"

    preprocess_max_width: int = 1920
    preprocess_max_height: int = 1080
    preprocess_initial_quality: float = 0.85
    preprocess_min_quality: float = 0.3
    preprocess_size_cap_bytes: int = 10 * 1024 * 1024
    input_max_bytes: int = 32 * 1024 * 1024
    crop_quality: float = 0.85

    source_fetch_timeout_seconds: float = 10.0

    batch_concurrency: int = 4
    default_category: str = "general"

    def provider_names(self) -> list[str]:
        """Configured provider names in declaration order, lowercased and de-duplicated."""
        names: list[str] = []
        for raw in self.upload_providers.split(","):
            name = raw.strip().lower()
            if name and name not in names:
                names.append(name)
        return names
