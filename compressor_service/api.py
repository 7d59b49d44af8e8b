"""
FastAPI layer exposing the compression pipeline.

Endpoints:
 - GET /health
 - GET /compress
 - GET /compress/summary
 - GET /compressed_images/* (static, local output directory)
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from . import __version__, config
from .errors import ConfigurationError
from .models import RunSummary
from .pipeline import run_pipeline

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Images compressed and ready to view."
FAILURE_MESSAGE = "Error compressing images."


def _success_text(summary: RunSummary) -> str:
    return (
        f"{SUCCESS_MESSAGE} ({summary.succeeded}/{summary.attempted} succeeded, "
        f"{summary.failed_count} failed)"
    )


def create_app(settings: Optional[config.Settings] = None) -> FastAPI:
    settings = settings or config.get_settings()
    app = FastAPI(title="Image Compression Service", version=__version__)
    app.state.settings = settings
    app.state.last_summary = None
    app.state.run_lock = threading.Lock()

    settings.output_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.static_url_prefix,
        StaticFiles(directory=str(settings.output_dir), check_dir=False),
        name="compressed_images",
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/compress", response_class=PlainTextResponse)
    def compress(request: Request, variant: Optional[str] = Query(None)):
        state = request.app.state
        try:
            with state.run_lock:
                summary = run_pipeline(variant=variant, settings=state.settings)
        except ConfigurationError as exc:
            logger.error("Pipeline misconfigured: %s", exc)
            return PlainTextResponse(FAILURE_MESSAGE, status_code=500)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Pipeline run failed: %s", exc)
            return PlainTextResponse(FAILURE_MESSAGE, status_code=500)

        state.last_summary = summary
        return PlainTextResponse(_success_text(summary))

    @app.get("/compress/summary")
    def last_summary(request: Request):
        summary = request.app.state.last_summary
        if summary is None:
            raise HTTPException(status_code=404, detail="No pipeline run yet")
        return summary.to_dict()

    return app
