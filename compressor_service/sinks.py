"""
Sink providers: where transcoded images go.

Both sinks overwrite an existing object of the same name, so re-running the
pipeline over the same listing is idempotent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import os
from pathlib import Path
import posixpath
import tempfile
from typing import Any, Optional
from urllib.parse import quote, urljoin

from botocore.exceptions import BotoCoreError, ClientError

from .errors import StoreError

logger = logging.getLogger(__name__)


def _safe_name(name: str) -> str:
    base = posixpath.basename(name.replace("\\", "/"))
    if not base or base in {".", ".."}:
        raise StoreError(f"Invalid output name: {name!r}")
    return base


class SinkProvider(ABC):
    @abstractmethod
    def store(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Persist `data` under `name` and return its public locator."""


class ObjectStoreSink(SinkProvider):
    """Uploads to an S3-compatible bucket (Cloudflare R2 in production)."""

    def __init__(
        self,
        client: Any,
        bucket: str,
        public_base_url: Optional[str] = None,
        key_prefix: str = "",
    ):
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url
        self.key_prefix = key_prefix.strip("/")

    def key_for(self, name: str) -> str:
        base = _safe_name(name)
        return f"{self.key_prefix}/{base}" if self.key_prefix else base

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return urljoin(self.public_base_url.rstrip("/") + "/", quote(key))
        # Path-style addressing; R2 does not serve virtual-hosted buckets on the API endpoint.
        endpoint = self.client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{self.bucket}/{quote(key)}"

    def store(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        key = self.key_for(name)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Upload of {key} to bucket {self.bucket} failed: {exc}") from exc
        location = self.public_url(key)
        logger.info("File uploaded successfully to object store: %s", location)
        return location


class LocalDirectorySink(SinkProvider):
    """Writes into a local directory that the API serves under `public_prefix`."""

    def __init__(self, directory: Path, public_prefix: str = "/compressed_images"):
        self.directory = Path(directory)
        self.public_prefix = "/" + public_prefix.strip("/")

    def store(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        base = _safe_name(name)
        target = self.directory / base
        tmp_path = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".part", dir=str(self.directory))
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            raise StoreError(f"Could not write {target}: {exc}") from exc
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
        logger.info("Compressed image saved to: %s", target)
        return f"{self.public_prefix}/{quote(base)}"
