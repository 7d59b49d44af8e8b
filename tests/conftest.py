"""Shared fixtures: synthetic images and in-memory providers."""

from __future__ import annotations

from io import BytesIO
from typing import Dict, List, Optional

from PIL import Image
import pytest

from compressor_service.errors import NotFoundError, RecordUpdateError, StoreError
from compressor_service.models import Item
from compressor_service.records import RecordStore
from compressor_service.sinks import SinkProvider
from compressor_service.sources import SourceProvider


def make_image(fmt: str = "PNG", size=(64, 48), mode: str = "RGB") -> bytes:
    """Encode a small noisy image; noise makes quality settings matter."""
    image = Image.effect_noise(size, 64).convert(mode)
    buf = BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


class FakeSource(SourceProvider):
    def __init__(self, items: List[Item], blobs: Dict[str, bytes], errors: Optional[Dict[str, Exception]] = None):
        self.items = items
        self.blobs = blobs
        self.errors = errors or {}
        self.fetched: List[str] = []

    def list(self) -> List[Item]:
        return list(self.items)

    def fetch(self, locator: str) -> bytes:
        self.fetched.append(locator)
        if locator in self.errors:
            raise self.errors[locator]
        if locator not in self.blobs:
            raise NotFoundError(f"missing {locator}")
        return self.blobs[locator]


class FakeSink(SinkProvider):
    def __init__(self, fail_names=()):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.order: List[str] = []
        self.fail_names = set(fail_names)

    def store(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        if name in self.fail_names:
            raise StoreError(f"refused {name}")
        self.objects[name] = data
        self.content_types[name] = content_type
        self.order.append(name)
        return f"mem://bucket/{name}"


class FakeRecords(RecordStore):
    """Asserts the stored object exists before any bookkeeping happens."""

    def __init__(self, sink: FakeSink, fail_ids=()):
        self.sink = sink
        self.fail_ids = set(fail_ids)
        self.updates: Dict[object, str] = {}

    def update(self, identifier, new_locator: str) -> None:
        name = new_locator.rsplit("/", 1)[-1]
        assert name in self.sink.objects, "record updated before store"
        if identifier in self.fail_ids:
            raise RecordUpdateError(f"cannot update {identifier}", identifier)
        self.updates[identifier] = new_locator


@pytest.fixture
def png_bytes() -> bytes:
    return make_image("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image("JPEG")
