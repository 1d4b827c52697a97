from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = "FastDoc - Sistema de Aprobación de Documentos"
    log_level: str = "INFO"

    # Postgres en despliegue: postgresql://postgres:root@db:5432/dp-db
    database_url: str = "sqlite:///./fastdoc.db"

    upload_dir: str = "uploads"
    public_base_url: str = "http://localhost:8000/files"
    max_file_size: int = 10 * 1024 * 1024  # 10 MB

    secret_key: str = "your-secret-key-here"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Servicio externo de firma (add_signature_v2)
    compositor_base_url: str = "http://localhost:8080"
    compositor_endpoint: str = "/add_signature_v2"
    compositor_timeout_seconds: float = 60.0
    compositor_max_retries: int = 3
    compositor_backoff_seconds: float = 1.0

    signature_block_width: int = 120
    signature_block_height: int = 60
    page_width_pt: float = 595.0
    page_height_pt: float = 842.0
    default_approval_comment: str = "Approved"

    superseded_sweep_minutes: int = 60

    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    seed_demo_users: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
