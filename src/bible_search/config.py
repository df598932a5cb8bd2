from typing import Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Primary corpus
    bible_translation: str = "NLT"
    embed_dim: int = 384
    bible_database_path: str = "data/bible.sqlite"
    translations_dir: str = "data/translations"

    # Remote object store
    bible_blob_endpoint: str = "https://blob.vercel-storage.com"
    bible_blob_prefix: str = "translations"
    blob_read_write_token: Optional[SecretStr] = None
    blob_timeout: float = 30.0

    # Sync
    bible_force_upload: bool = False
    local_manifest_path: str = "data/translation-manifest.json"
    sync_concurrency: int = 4

    # HTTP boundary
    api_key: Optional[SecretStr] = None
    default_search_limit: int = 5
    max_search_limit: int = 50

    # Remote search (scripts/search_bible.py --api)
    bible_api_base_url: Optional[str] = None
    api_timeout: float = 30.0

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        extra="ignore"
    )

    @field_validator("bible_translation", mode="after")
    @classmethod
    def _upper_translation(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("bible_blob_endpoint", mode="after")
    @classmethod
    def _strip_endpoint(cls, v: str) -> str:
        return v.rstrip("/")

settings = Settings()
