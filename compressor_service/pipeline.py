"""
High-level pipeline wiring.

`run_pipeline` is the main entry point used by both the HTTP API and the
CLI. It builds explicit provider instances from settings (no module-level
clients) and hands them to a `PipelineRunner`:

 - remote: database listing -> HTTP fetch -> JPEG -> object store -> record update
 - local:  input directory -> WEBP -> output directory
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

import boto3
from botocore.client import Config as BotoConfig
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from . import config
from .errors import ConfigurationError
from .models import RunSummary
from .naming import NamingPolicy
from .records import DatabaseRecordStore
from .runner import PipelineRunner, TempFactory
from .sinks import LocalDirectorySink, ObjectStoreSink
from .sources import DatabaseListing, DirectoryListing
from .tempfiles import FileTemporaryResource, MemoryTemporaryResource

logger = logging.getLogger(__name__)


def get_s3_client(settings: config.Settings):
    settings.require_remote()
    session = boto3.session.Session()
    return session.client(
        service_name="s3",
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        endpoint_url=settings.r2_endpoint,
        config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


def temp_factory_for(settings: config.Settings) -> TempFactory:
    if settings.temp_backend == "memory":
        return lambda run_id: MemoryTemporaryResource()
    return lambda run_id: FileTemporaryResource(run_id, base_dir=settings.temp_dir)


def build_local_runner(
    settings: config.Settings, cancel_event: Optional[threading.Event] = None
) -> PipelineRunner:
    return PipelineRunner(
        source=DirectoryListing(settings.input_dir),
        sink=LocalDirectorySink(settings.output_dir, public_prefix=settings.static_url_prefix),
        spec=config.encoding_for_variant("local", settings),
        policy=NamingPolicy.converting(),
        temp_factory=temp_factory_for(settings),
        max_workers=settings.max_workers,
        cancel_event=cancel_event,
    )


def build_remote_runner(
    settings: config.Settings,
    cancel_event: Optional[threading.Event] = None,
    on_close: Optional[List[Callable[[], None]]] = None,
) -> PipelineRunner:
    settings.require_remote()
    try:
        engine = create_engine(settings.database_url, pool_pre_ping=True)
    except SQLAlchemyError as exc:
        raise ConfigurationError(f"Invalid DATABASE_URL: {exc}") from exc
    if on_close is not None:
        on_close.append(engine.dispose)
    table_args = dict(
        table_name=settings.source_table,
        id_column=settings.source_id_column,
        locator_column=settings.source_locator_column,
    )
    return PipelineRunner(
        source=DatabaseListing(engine, timeout_seconds=settings.request_timeout_seconds, **table_args),
        sink=ObjectStoreSink(
            get_s3_client(settings),
            bucket=settings.r2_bucket_name,
            public_base_url=settings.r2_public_base_url,
            key_prefix=settings.r2_key_prefix,
        ),
        spec=config.encoding_for_variant("remote", settings),
        policy=NamingPolicy.same_format(),
        records=DatabaseRecordStore(engine, **table_args),
        temp_factory=temp_factory_for(settings),
        max_workers=settings.max_workers,
        cancel_event=cancel_event,
    )


def run_pipeline(
    variant: Optional[str] = None,
    settings: Optional[config.Settings] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RunSummary:
    """
    Build and run one batch for `variant` (defaults to PIPELINE_VARIANT).

    Raises:
        ConfigurationError: unknown variant or incomplete remote settings.
        SourceUnavailableError: the item listing could not be produced.
    """
    settings = settings or config.get_settings()
    variant = (variant or settings.pipeline_variant).lower()
    closers: List[Callable[[], None]] = []
    if variant == "local":
        runner = build_local_runner(settings, cancel_event)
    elif variant == "remote":
        runner = build_remote_runner(settings, cancel_event, on_close=closers)
    else:
        raise ConfigurationError(f"Unknown pipeline variant: {variant!r}")

    logger.info("Starting %s pipeline", variant)
    try:
        return runner.run()
    finally:
        for close in closers:
            close()
