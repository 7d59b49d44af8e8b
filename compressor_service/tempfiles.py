"""
Scoped temporary storage for intermediate artifacts.

Each item acquires a handle for its fetched bytes and one for its transcoded
bytes. Handles are released on every exit path via `scope()`; `release` is
idempotent so partial failures can always clean up.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import os
from pathlib import Path
import re
import shutil
import tempfile
import threading
from typing import Dict, Iterator, Optional
import uuid

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class TemporaryArtifact:
    """Opaque handle returned by `acquire`."""

    __slots__ = ("key", "label")

    def __init__(self, key: str, label: str):
        self.key = key
        self.label = label

    def __repr__(self) -> str:
        return f"TemporaryArtifact({self.key!r})"


class TemporaryResource:
    """Base class; subclasses decide where artifact bytes live."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live: Dict[str, TemporaryArtifact] = {}

    @property
    def outstanding(self) -> int:
        with self._lock:
            return len(self._live)

    def acquire(self, label: str = "artifact") -> TemporaryArtifact:
        safe_label = _UNSAFE.sub("_", label).strip("._") or "artifact"
        handle = TemporaryArtifact(key=f"{safe_label}-{uuid.uuid4().hex}", label=safe_label)
        self._allocate(handle)
        with self._lock:
            self._live[handle.key] = handle
        return handle

    def write(self, handle: TemporaryArtifact, data: bytes) -> None:
        self._check_live(handle)
        self._write(handle, data)

    def read(self, handle: TemporaryArtifact) -> bytes:
        self._check_live(handle)
        return self._read(handle)

    def release(self, handle: Optional[TemporaryArtifact]) -> None:
        if handle is None:
            return
        with self._lock:
            live = self._live.pop(handle.key, None)
        if live is not None:
            self._free(live)

    @contextmanager
    def scope(self, label: str = "artifact") -> Iterator[TemporaryArtifact]:
        handle = self.acquire(label)
        try:
            yield handle
        finally:
            self.release(handle)

    def close(self) -> None:
        with self._lock:
            handles = list(self._live.values())
            self._live.clear()
        for handle in handles:
            self._free(handle)

    def __enter__(self) -> "TemporaryResource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _check_live(self, handle: TemporaryArtifact) -> None:
        with self._lock:
            if handle.key not in self._live:
                raise KeyError(f"Temporary artifact already released: {handle.key}")

    # Storage hooks
    def _allocate(self, handle: TemporaryArtifact) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def _write(self, handle: TemporaryArtifact, data: bytes) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def _read(self, handle: TemporaryArtifact) -> bytes:  # pragma: no cover - interface only
        raise NotImplementedError

    def _free(self, handle: TemporaryArtifact) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


class MemoryTemporaryResource(TemporaryResource):
    """Keeps artifacts as in-process buffers."""

    def __init__(self) -> None:
        super().__init__()
        self._buffers: Dict[str, bytes] = {}

    def _allocate(self, handle: TemporaryArtifact) -> None:
        self._buffers[handle.key] = b""

    def _write(self, handle: TemporaryArtifact, data: bytes) -> None:
        self._buffers[handle.key] = bytes(data)

    def _read(self, handle: TemporaryArtifact) -> bytes:
        return self._buffers[handle.key]

    def _free(self, handle: TemporaryArtifact) -> None:
        self._buffers.pop(handle.key, None)


class FileTemporaryResource(TemporaryResource):
    """Keeps artifacts as files in a private per-run directory."""

    def __init__(self, run_id: str, base_dir: Optional[Path] = None):
        super().__init__()
        prefix = f"compressor-{_UNSAFE.sub('_', run_id)}-"
        self.directory = Path(tempfile.mkdtemp(prefix=prefix, dir=str(base_dir) if base_dir else None))

    def path_for(self, handle: TemporaryArtifact) -> Path:
        return self.directory / handle.key

    def _allocate(self, handle: TemporaryArtifact) -> None:
        self.path_for(handle).touch(exist_ok=False)

    def _write(self, handle: TemporaryArtifact, data: bytes) -> None:
        self.path_for(handle).write_bytes(data)

    def _read(self, handle: TemporaryArtifact) -> bytes:
        return self.path_for(handle).read_bytes()

    def _free(self, handle: TemporaryArtifact) -> None:
        try:
            os.unlink(self.path_for(handle))
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("tempfiles: failed to remove %s: %s", self.path_for(handle), exc)

    def close(self) -> None:
        super().close()
        shutil.rmtree(self.directory, ignore_errors=True)
