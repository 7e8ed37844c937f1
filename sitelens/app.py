from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from queue import Queue
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, HttpUrl

from . import __version__
from .baselines import BASELINES
from .config import ScanSettings
from .errors import FetchFailed, MalformedInput, PolicyRejected, ScanError, UnknownSiteType
from .scanner import scan as run_scan

logger = logging.getLogger("sitelens.app")
logger.addHandler(logging.NullHandler())

ERROR_STATUS = (
    (MalformedInput, 400),
    (UnknownSiteType, 400),
    (PolicyRejected, 451),
    (FetchFailed, 502),
)


class ScanRequest(BaseModel):
    url: HttpUrl
    site_type: Optional[str] = Field(
        default=None,
        description="Baseline category to score against; detected from the page when omitted.",
    )
    ethical_mode: bool = Field(
        default=True,
        description="Refuse to scan when robots.txt or the terms of service prohibit scraping.",
    )


app = FastAPI(
    title="SiteLens Risk Scanner API",
    description="HTTP layer on top of the SiteLens scan pipeline. Only sends regular GET requests.",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_scan_options() -> Dict[str, Any]:
    """Keyword arguments forwarded to every scan; overridden in tests."""
    return {"settings": ScanSettings.from_env()}


def status_for(exc: ScanError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _error_detail(exc: ScanError) -> Dict[str, Any]:
    detail: Dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, MalformedInput):
        detail["issues"] = exc.issues
    elif isinstance(exc, PolicyRejected):
        detail["reason"] = exc.reason
        detail["scraping_policy"] = exc.policy.to_dict()
    elif isinstance(exc, FetchFailed):
        detail["status_code"] = exc.status_code
        detail["explanation"] = exc.explanation
    return detail


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.get("/healthz", tags=["meta"])
def healthcheck():
    return {"status": "ok"}


@app.get("/api/site-types", tags=["meta"])
def site_types():
    return [
        {
            "site_type": baseline.site_type,
            "description": baseline.description,
            "base_score": baseline.base_score,
            "industry": baseline.industry,
        }
        for baseline in BASELINES.values()
    ]


@app.post("/api/scan", tags=["scan"])
def scan(payload: ScanRequest, options: Dict[str, Any] = Depends(get_scan_options)):
    try:
        result = run_scan(str(payload.url), payload.site_type, payload.ethical_mode, **options)
    except ScanError as exc:
        raise HTTPException(status_code=status_for(exc), detail=_error_detail(exc))
    return result.to_dict()


@app.get("/api/scan/stream", tags=["scan"])
def scan_stream(
    url: HttpUrl,
    site_type: Optional[str] = Query(default=None, description="Optional baseline category."),
    ethical_mode: bool = Query(default=True),
    options: Dict[str, Any] = Depends(get_scan_options),
):
    event_queue: "Queue[Optional[dict]]" = Queue()

    def progress(event: dict) -> None:
        event_queue.put({**event, "timestamp": _now()})

    def worker() -> None:
        try:
            result = run_scan(
                str(url), site_type, ethical_mode, progress_callback=progress, **options
            )
            event_queue.put(
                {"type": "report", "report": result.to_dict(), "progress": 100, "timestamp": _now()}
            )
        except ScanError as exc:
            event_queue.put(
                {"type": "error", "status": status_for(exc), **_error_detail(exc), "timestamp": _now()}
            )
        except Exception as exc:
            logger.exception("Streaming scan of %s crashed", url)
            event_queue.put({"type": "error", "status": 500, "message": str(exc), "timestamp": _now()})
        finally:
            event_queue.put(None)

    threading.Thread(target=worker, daemon=True).start()

    def event_stream():
        while True:
            item = event_queue.get()
            if item is None:
                break
            yield f"data: {json.dumps(item, ensure_ascii=False)}\n\n"

    return StreamingResponse(event_stream(), media_type="text/event-stream")
