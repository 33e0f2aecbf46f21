from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Server settings; every field can come from a HTTPSVR_* env var.

    Frozen: the listener reads it once when it starts.
    """

    model_config = SettingsConfigDict(
        env_prefix="HTTPSVR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    listen_addr: str = ":8000"

    # Seconds. Bigger read/write timeouts suit a file server.
    read_header_timeout: float = Field(default=20.0, gt=0)
    read_timeout: float = Field(default=10 * 60.0, gt=0)
    write_timeout: float = Field(default=20 * 60.0, gt=0)

    enable_log: bool = True
    enable_metric: bool = True

    metric_reset_enabled: bool = True
    metric_reset_interval: float = Field(default=24 * 3600.0, gt=0)
    metric_reset_offset: float = Field(default=0.0, ge=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"


@lru_cache(maxsize=1)
def get_settings() -> ServerConfig:
    return ServerConfig()
