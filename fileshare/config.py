from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8')

    app_name: str = 'File Sharing API'
    app_host: str = '0.0.0.0'
    app_port: int = 8000
    storage_path: str = 'storage'
    max_upload_mb: int = Field(default=100, ge=1, le=4096)
    multipart_overhead_bytes: int = Field(default=1024 * 1024, ge=0)
    log_level: str = 'info'
    cors_origins: str = 'http://localhost:3000'

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


settings = Settings()
