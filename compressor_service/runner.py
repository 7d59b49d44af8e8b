"""
Pipeline orchestration.

For every item returned by the source listing the runner drives a small
state machine:

    PENDING -> FETCHING -> TRANSFORMING -> STORING -> RECORDING -> DONE
    any stage -> FAILED(stage, error kind)

Each stage returns a `StageResult` instead of letting exceptions escape, so
moving on to the next item after a failure is part of the control flow.
Only a failure of `source.list()` aborts the run.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
import re
import threading
from typing import Any, Callable, Optional
import uuid

from .errors import FetchError, PipelineError, StoreError
from .models import EncodingSpec, Item, ItemFailure, ItemStage, RunSummary, SummaryCollector
from .naming import NamingPolicy
from .records import NullRecordStore, RecordStore
from .sinks import SinkProvider
from .sources import SourceProvider
from .tempfiles import MemoryTemporaryResource, TemporaryArtifact, TemporaryResource
from .transform import transform

logger = logging.getLogger(__name__)

TempFactory = Callable[[str], TemporaryResource]

_KEY_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass(frozen=True)
class StageResult:
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _attempt(fn: Callable[..., Any], *args: Any) -> StageResult:
    try:
        return StageResult(value=fn(*args))
    except PipelineError as exc:
        return StageResult(error=exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error in pipeline stage: %s", exc)
        return StageResult(error=exc)


def _error_kind(exc: Exception) -> str:
    return exc.kind if isinstance(exc, PipelineError) else type(exc).__name__


def _memory_temp(run_id: str) -> TemporaryResource:
    return MemoryTemporaryResource()


class _ItemRun:
    """Tracks the current stage of one item."""

    def __init__(self, item: Item):
        self.item = item
        self.stage = ItemStage.PENDING

    def advance(self, stage: ItemStage) -> None:
        logger.debug("item %s: %s -> %s", self.item.identifier, self.stage.value, stage.value)
        self.stage = stage

    def failure(self, exc: Exception) -> ItemFailure:
        return ItemFailure(
            identifier=self.item.identifier,
            stage=self.stage,
            error_kind=_error_kind(exc),
            message=str(exc),
        )


class PipelineRunner:
    """Runs fetch -> transform -> store -> record for every listed item."""

    def __init__(
        self,
        source: SourceProvider,
        sink: SinkProvider,
        spec: EncodingSpec,
        policy: NamingPolicy,
        records: Optional[RecordStore] = None,
        temp_factory: Optional[TempFactory] = None,
        max_workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.source = source
        self.sink = sink
        self.spec = spec
        self.policy = policy
        self.records = records or NullRecordStore()
        self.temp_factory = temp_factory or _memory_temp
        self.max_workers = max_workers
        self.cancel_event = cancel_event

    def run(self, run_id: Optional[str] = None) -> RunSummary:
        run_id = run_id or uuid.uuid4().hex[:12]
        items = self.source.list()
        logger.info(
            "run %s: processing %d items as %s q=%d (workers=%d)",
            run_id,
            len(items),
            self.spec.format.value,
            self.spec.quality,
            self.max_workers,
        )

        collector = SummaryCollector(run_id)
        temp = self.temp_factory(run_id)
        try:
            if self.max_workers == 1 or len(items) <= 1:
                for item in items:
                    self.process_item(item, temp, collector)
            else:
                with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="compressor") as pool:
                    futures = [pool.submit(self.process_item, item, temp, collector) for item in items]
                    for future in futures:
                        future.result()
            leaked = temp.outstanding
            if leaked:
                logger.error("run %s: %d temporary artifacts were not released", run_id, leaked)
        finally:
            temp.close()

        summary = collector.freeze()
        logger.info(
            "run %s finished: attempted=%d succeeded=%d failed=%d record_failures=%d",
            run_id,
            summary.attempted,
            summary.succeeded,
            summary.failed_count,
            len(summary.record_failures),
        )
        return summary

    def process_item(self, item: Item, temp: TemporaryResource, collector: SummaryCollector) -> ItemStage:
        state = _ItemRun(item)
        key = _KEY_UNSAFE.sub("_", str(item.identifier))[:48] or "item"
        raw_handle: Optional[TemporaryArtifact] = None
        out_handle: Optional[TemporaryArtifact] = None
        try:
            state.advance(ItemStage.FETCHING)
            result = _attempt(temp.acquire, f"{key}.raw")
            if result.ok:
                raw_handle = result.value
                result = _attempt(self._fetch, item, temp, raw_handle)
            if not result.ok:
                return self._fail(state, result.error, collector)

            state.advance(ItemStage.TRANSFORMING)
            result = _attempt(temp.acquire, f"{key}.out")
            if result.ok:
                out_handle = result.value
                result = _attempt(self._transform, item, temp, raw_handle, out_handle)
            if not result.ok:
                return self._fail(state, result.error, collector)
            filename, content_type = result.value
            temp.release(raw_handle)

            state.advance(ItemStage.STORING)
            result = _attempt(self._store, filename, content_type, temp, out_handle)
            if not result.ok:
                return self._fail(state, result.error, collector)
            locator = result.value

            state.advance(ItemStage.RECORDING)
            result = _attempt(self.records.update, item.identifier, locator)
            record_failure = None
            if not result.ok:
                record_failure = state.failure(result.error)
                logger.warning(
                    "Stored %s but failed to record it for ID %s: %s",
                    locator,
                    item.identifier,
                    result.error,
                )

            state.advance(ItemStage.DONE)
            collector.add_success(item.identifier, locator, record_failure)
            logger.info("Processed ID %s -> %s", item.identifier, locator)
            return state.stage
        finally:
            temp.release(raw_handle)
            temp.release(out_handle)

    def _fail(self, state: _ItemRun, error: Exception, collector: SummaryCollector) -> ItemStage:
        failure = state.failure(error)
        state.advance(ItemStage.FAILED)
        collector.add_failure(failure)
        logger.warning(
            "Failed processing for ID %s at %s: %s: %s",
            failure.identifier,
            failure.stage.value,
            failure.error_kind,
            failure.message,
        )
        return state.stage

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _fetch(self, item: Item, temp: TemporaryResource, handle: TemporaryArtifact) -> None:
        if self._cancelled():
            raise FetchError("cancelled", item.identifier)
        temp.write(handle, self.source.fetch(item.locator))

    def _transform(
        self,
        item: Item,
        temp: TemporaryResource,
        raw_handle: TemporaryArtifact,
        out_handle: TemporaryArtifact,
    ) -> tuple:
        output = transform(item.name, temp.read(raw_handle), self.spec, self.policy)
        temp.write(out_handle, output.data)
        return output.filename, output.content_type

    def _store(self, filename: str, content_type: str, temp: TemporaryResource, handle: TemporaryArtifact) -> str:
        if self._cancelled():
            raise StoreError("cancelled")
        return self.sink.store(filename, temp.read(handle), content_type)
