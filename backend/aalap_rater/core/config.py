# backend/aalap_rater/core/config.py
from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings with safe local defaults.

    - AWS settings are OPTIONAL unless STORAGE_MODE=s3
    - STORAGE_MODE=local keeps the ratings document on disk, so the API boots
      in dev / CI without credentials
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="dev", alias="ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Storage
    # local = ratings document lives under LOCAL_STORAGE_DIR
    # s3    = AWS S3 (or any S3-compatible store via AWS_ENDPOINT_URL)
    storage_mode: str = Field(default="local", alias="STORAGE_MODE")  # local | s3
    local_storage_dir: str = Field(default=".aalap_store", alias="LOCAL_STORAGE_DIR")

    # S3 (required only if STORAGE_MODE=s3)
    aws_region: Optional[str] = Field(default=None, alias="AWS_REGION")
    aws_bucket: Optional[str] = Field(default=None, alias="AWS_BUCKET")
    aws_access_key_id: Optional[str] = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(default=None, alias="AWS_SECRET_ACCESS_KEY")
    aws_endpoint_url: Optional[str] = Field(default=None, alias="AWS_ENDPOINT_URL")

    # Ratings document
    ratings_key: str = Field(default="musicgen-outputs/ratings.json", alias="RATINGS_KEY")
    ratings_conditional_writes: bool = Field(default=False, alias="RATINGS_CONDITIONAL_WRITES")

    # Public assets (prompts.json + generated audio)
    public_base_url: str = Field(
        default="",
        validation_alias=AliasChoices("PUBLIC_BASE_URL", "NEXT_PUBLIC_S3_BASE"),
    )
    audio_prefix: str = Field(default="musicgen-outputs/", alias="AUDIO_PREFIX")
    audio_extension: str = Field(default=".wav", alias="AUDIO_EXTENSION")
    audio_index_offset: int = Field(default=1, ge=0, alias="AUDIO_INDEX_OFFSET")
    catalog_cache_ttl_sec: int = Field(default=60, ge=0, alias="CATALOG_CACHE_TTL_SEC")

    # CORS
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")  # comma-separated or "*"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def public_base(self) -> str:
        return self.public_base_url.rstrip("/")

    def s3_required(self) -> bool:
        return self.storage_mode.strip().lower() == "s3"

    def validate_s3_or_raise(self) -> None:
        """
        Call this ONLY when you actually use S3.
        This avoids boot-time failures in local/dev/CI.
        """
        if not self.s3_required():
            return

        missing = []
        if not self.aws_region:
            missing.append("AWS_REGION")
        if not self.aws_bucket:
            missing.append("AWS_BUCKET")
        # Credentials may come from the default boto3 chain, but both or neither.
        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            missing.append("AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY")

        if missing:
            raise RuntimeError(
                "S3 is enabled (STORAGE_MODE=s3) but required env vars are missing: "
                + ", ".join(missing)
            )


settings = Settings()
