"""Application configuration via environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Server
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Uploads
    max_file_size: int = 500 * 1024 * 1024
    max_upload_files: int = 10

    # Staging areas
    upload_dir: str = "/tmp/uploads"
    output_dir: str = "/tmp/output"

    # Engine
    engine_binary: str = "ffmpeg"
    engine_flags: List[str] = ["-y", "-progress", "pipe:1"]
    # Always enforced; there is no "no timeout" value
    timeout_ms: int = Field(default=300000, gt=0)
    kill_grace_seconds: float = Field(default=5.0, gt=0)
    health_probe_timeout: float = Field(default=1.0, gt=0)

    # Job processing
    max_concurrent_jobs: int = Field(default=4, gt=0)
    retention_hours: float = 24
    sweep_interval_seconds: float = 3600

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def processing_timeout(self) -> float:
        return self.timeout_ms / 1000.0


settings = Settings()
