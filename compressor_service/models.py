"""
Plain data types passed between the providers and the pipeline runner.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import posixpath
import threading
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from .errors import UnsupportedFormatError


class OutputFormat(str, Enum):
    JPEG = "jpeg"
    WEBP = "webp"
    PNG = "png"

    @property
    def pil_format(self) -> str:
        return self.value.upper()

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @classmethod
    def parse(cls, name: str) -> "OutputFormat":
        key = (name or "").strip().lower().lstrip(".")
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError as exc:
            raise UnsupportedFormatError(f"Unsupported output format: {name!r}") from exc


_EXTENSIONS = {
    OutputFormat.JPEG: ".jpg",
    OutputFormat.WEBP: ".webp",
    OutputFormat.PNG: ".png",
}
_ALIASES = {"jpg": "jpeg"}


@dataclass(frozen=True)
class EncodingSpec:
    format: OutputFormat
    quality: int = 80

    def __post_init__(self) -> None:
        if not isinstance(self.quality, int) or not 0 <= self.quality <= 100:
            raise ValueError(f"quality must be an integer in 0..100, got {self.quality!r}")

    @classmethod
    def parse(cls, format_name: str, quality: int) -> "EncodingSpec":
        return cls(format=OutputFormat.parse(format_name), quality=quality)


@dataclass(frozen=True)
class Item:
    identifier: Any
    locator: str

    @property
    def name(self) -> str:
        """Basename of the locator; query strings and fragments are ignored."""
        parsed = urlparse(self.locator)
        if parsed.scheme in {"http", "https", "file"}:
            return posixpath.basename(unquote(parsed.path))
        return posixpath.basename(self.locator.replace("\\", "/"))


@dataclass(frozen=True)
class TransformResult:
    data: bytes
    filename: str
    content_type: str


class ItemStage(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    STORING = "storing"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemFailure:
    identifier: Any
    stage: ItemStage
    error_kind: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "stage": self.stage.value,
            "errorKind": self.error_kind,
            "message": self.message,
        }


@dataclass(frozen=True)
class RunSummary:
    run_id: str
    attempted: int
    succeeded: int
    failed: Tuple[ItemFailure, ...] = ()
    record_failures: Tuple[ItemFailure, ...] = ()
    outputs: Dict[Any, str] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": [f.to_dict() for f in self.failed],
            "recordFailures": [f.to_dict() for f in self.record_failures],
            "outputs": {str(k): v for k, v in self.outputs.items()},
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }


class SummaryCollector:
    """Append-only accumulator for one run; safe to share between worker threads."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.started_at = datetime.now(timezone.utc)
        self._lock = threading.Lock()
        self._attempted = 0
        self._succeeded = 0
        self._failed: List[ItemFailure] = []
        self._record_failures: List[ItemFailure] = []
        self._outputs: Dict[Any, str] = {}

    def add_success(self, identifier: Any, locator: str, record_failure: Optional[ItemFailure] = None) -> None:
        with self._lock:
            self._attempted += 1
            self._succeeded += 1
            self._outputs[identifier] = locator
            if record_failure is not None:
                self._record_failures.append(record_failure)

    def add_failure(self, failure: ItemFailure) -> None:
        with self._lock:
            self._attempted += 1
            self._failed.append(failure)

    def freeze(self) -> RunSummary:
        with self._lock:
            return RunSummary(
                run_id=self.run_id,
                attempted=self._attempted,
                succeeded=self._succeeded,
                failed=tuple(self._failed),
                record_failures=tuple(self._record_failures),
                outputs=dict(self._outputs),
                started_at=self.started_at,
                finished_at=datetime.now(timezone.utc),
            )
