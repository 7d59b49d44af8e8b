"""Exception taxonomy shared by the providers and the pipeline runner."""

from __future__ import annotations

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for every failure the pipeline knows how to classify."""

    def __init__(self, message: str, identifier: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.identifier = identifier

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigurationError(PipelineError):
    """Required settings are missing or inconsistent. Fatal at startup."""


class SourceUnavailableError(PipelineError):
    """The item listing could not be produced. Fatal for the whole run."""


class FetchError(PipelineError):
    """Raw bytes for an item could not be retrieved (network, timeout, IO)."""


class NotFoundError(FetchError):
    """The locator points at nothing."""


class DecodeError(PipelineError):
    """Input bytes are not a recognised raster image."""


class UnsupportedFormatError(PipelineError):
    """The requested output format has no encoder."""


class StoreError(PipelineError):
    """The sink did not accept the transcoded bytes."""


class RecordUpdateError(PipelineError):
    """Bookkeeping failed after the output was stored."""
