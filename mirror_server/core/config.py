from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

from composer_mirror.common.config import MirrorCoreConfig, load_typed_config


class Settings(BaseSettings):
    # App
    app_name: str = "Composer Mirror"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./composer-mirror.db"

    # Core configuration file (metadata URLs, routes, logging)
    config_path: Optional[str] = None

    # Access
    anonymous_access: bool = False
    api_key_header: str = "X-API-Key"

    def core_config(self) -> MirrorCoreConfig:
        if self.config_path:
            return load_typed_config(self.config_path)
        return MirrorCoreConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MIRROR_",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
