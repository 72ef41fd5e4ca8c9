from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # make it absolute so reload/CWD doesn't break it
        env_file=Path(__file__).resolve().parents[1] / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="PhotoStore", validation_alias="APP_NAME")
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        validation_alias="APP_ENV",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_dir: Path = Field(
        default=Path(__file__).resolve().parents[1] / "logs",
        validation_alias="LOG_DIR",
    )

    # API
    api_host: str = Field(default="127.0.0.1", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")

    # MongoDB (GridFS blob backend)
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        validation_alias="MONGO_URI",
    )
    mongo_db: str = Field(default="photo_store", validation_alias="MONGO_DB")

    # Blob Storage
    blob_backend: Literal["gridfs", "fsspec"] = Field(
        default="gridfs",
        validation_alias="BLOB_BACKEND",
    )
    blob_base_url: str = Field(
        default="file://" + str(Path(__file__).resolve().parents[1] / "blobs"),
        validation_alias="BLOB_BASE_URL",
        description="Root URL for the fsspec backend. Ignored for GridFS.",
    )
    blob_storage_options: dict = {}
    blob_chunk_size: int = Field(
        default=255 * 1024,
        validation_alias="BLOB_CHUNK_SIZE",
        description="Bytes per chunk when streaming uploads and downloads.",
    )
    blob_store_timeout_seconds: float | None = Field(
        default=30.0,
        validation_alias="BLOB_STORE_TIMEOUT_SECONDS",
    )

    # Kafka (job queue)
    enable_job_publishing: bool = Field(
        default=True,
        validation_alias="ENABLE_JOB_PUBLISHING",
    )
    kafka_bootstrap_servers: str = Field(
        default="localhost:19092",
        validation_alias="KAFKA_BOOTSTRAP_SERVERS",
    )
    kafka_topic: str = Field(default="photos", validation_alias="KAFKA_TOPIC")
    kafka_consumer_group: str = Field(
        default="thumbnailer",
        validation_alias="KAFKA_CONSUMER_GROUP",
    )
    kafka_message_timeout_ms: int = Field(
        default=10_000,
        validation_alias="KAFKA_MESSAGE_TIMEOUT_MS",
        description="Producer-side delivery timeout before a publish is reported failed.",
    )
    kafka_requeue_delay_seconds: float = Field(
        default=1.0,
        validation_alias="KAFKA_REQUEUE_DELAY_SECONDS",
        description="Pause before a requeued job is fetched again.",
    )
    queue_publish_timeout_seconds: float | None = Field(
        default=15.0,
        validation_alias="QUEUE_PUBLISH_TIMEOUT_SECONDS",
    )

    # Thumbnails
    thumbnail_max_size: int = Field(
        default=100,
        validation_alias="THUMBNAIL_MAX_SIZE",
        description="Longest edge of produced thumbnails, in pixels.",
    )


# Global settings instance
settings = Settings()
