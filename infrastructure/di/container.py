from __future__ import annotations

from lagom import Container
from motor.motor_asyncio import AsyncIOMotorClient

from application.ports.blob_store import BlobStore
from application.ports.job_queue import JobConsumer, JobQueue
from application.ports.thumbnail_renderer import ThumbnailRenderer
from application.use_cases.photo_use_cases import (
    GetPhotoUseCase,
    IngestPhotoUseCase,
    StreamPhotoUseCase,
)
from application.use_cases.thumbnail_use_cases import (
    GetThumbnailStatusUseCase,
    GetThumbnailUseCase,
    ProduceThumbnailUseCase,
    StreamThumbnailUseCase,
)
from infrastructure.blob_stores.fsspec_blob_store import FsspecBlobStore
from infrastructure.blob_stores.gridfs_blob_store import GridFSBlobStore
from infrastructure.config import Settings, settings
from infrastructure.imaging.pillow_thumbnail_renderer import PillowThumbnailRenderer
from infrastructure.kafka.kafka_job_consumer import KafkaJobConsumer
from infrastructure.kafka.kafka_job_queue import KafkaJobQueue


def _create_blob_store(config: Settings) -> BlobStore:
    if config.blob_backend == "fsspec":
        return FsspecBlobStore(
            base_url=config.blob_base_url,
            storage_options=config.blob_storage_options,
            chunk_size=config.blob_chunk_size,
        )
    client = AsyncIOMotorClient(config.mongo_uri)
    return GridFSBlobStore(client[config.mongo_db], chunk_size=config.blob_chunk_size)


def create_container(config: Settings = settings) -> Container:
    """Build the process-wide container.

    Store and queue clients are created once here and injected into every
    use case; nothing else reaches for them.
    """
    container = Container()

    # Blob storage (GridFS or fsspec)
    container[BlobStore] = _create_blob_store(config)

    # Job queue (Kafka)
    if config.enable_job_publishing:
        container[JobQueue] = KafkaJobQueue(
            config.kafka_bootstrap_servers,
            message_timeout_ms=config.kafka_message_timeout_ms,
        )
    else:
        container[JobQueue] = lambda _: None  # type: ignore[return-value]

    # Consumed by the thumbnail worker only, so built lazily
    container[JobConsumer] = lambda _: KafkaJobConsumer(
        config.kafka_bootstrap_servers,
        config.kafka_consumer_group,
        requeue_delay=config.kafka_requeue_delay_seconds,
    )

    container[ThumbnailRenderer] = lambda _: PillowThumbnailRenderer(
        max_size=config.thumbnail_max_size,
    )

    # Photo Use Cases
    container[IngestPhotoUseCase] = lambda c: IngestPhotoUseCase(
        blob_store=c[BlobStore],
        job_queue=c[JobQueue],
        queue_name=config.kafka_topic,
        chunk_size=config.blob_chunk_size,
        store_timeout=config.blob_store_timeout_seconds,
        publish_timeout=config.queue_publish_timeout_seconds,
    )
    container[GetPhotoUseCase] = lambda c: GetPhotoUseCase(blob_store=c[BlobStore])
    container[StreamPhotoUseCase] = lambda c: StreamPhotoUseCase(blob_store=c[BlobStore])

    # Thumbnail Use Cases
    container[GetThumbnailUseCase] = lambda c: GetThumbnailUseCase(blob_store=c[BlobStore])
    container[StreamThumbnailUseCase] = lambda c: StreamThumbnailUseCase(blob_store=c[BlobStore])
    container[GetThumbnailStatusUseCase] = lambda c: GetThumbnailStatusUseCase(
        blob_store=c[BlobStore],
    )
    container[ProduceThumbnailUseCase] = lambda c: ProduceThumbnailUseCase(
        blob_store=c[BlobStore],
        renderer=c[ThumbnailRenderer],
        store_timeout=config.blob_store_timeout_seconds,
    )

    return container
