from __future__ import annotations

import time
from typing import Iterable, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response, StreamingResponse

from models.detection import DetectionSet
from models.status import DetectorState
from runtime.context import FeedRuntime, RuntimeContext
from ..api_models import (
    DetectionModel,
    DetectionSetResponse,
    DetectorStatusResponse,
    FeedSummary,
    HealthResponse,
)

# Handlers that touch a scheduler are `async def` so they run on the event
# loop that owns it, never on the threadpool.
router = APIRouter()


def _ctx(request: Request) -> RuntimeContext:
    return request.app.state.ctx


def _feed(request: Request, feed_id: str) -> FeedRuntime:
    try:
        return _ctx(request).get_feed(feed_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown feed: {feed_id}")


def _status_response(feed_id: str, state: DetectorState) -> DetectorStatusResponse:
    return DetectorStatusResponse(feed_id=feed_id, **state.to_dict())


def _detections_response(feed_id: str, detection_set: DetectionSet) -> DetectionSetResponse:
    return DetectionSetResponse(
        feed_id=feed_id,
        sequence=detection_set.sequence,
        canvas_size=list(detection_set.canvas_size) if detection_set.canvas_size else None,
        timestamp=detection_set.timestamp,
        detections=[DetectionModel(**d.to_dict()) for d in detection_set],
    )


def _last_frame_age(last_frame_ts: Optional[float], now: float) -> Optional[float]:
    if last_frame_ts is None:
        return None
    return max(0.0, now - last_frame_ts)


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    ctx = _ctx(request)
    active = sum(1 for f in ctx.feeds.values() if f.scheduler.status.is_active)
    return HealthResponse(
        status="ok",
        feeds=len(ctx.feeds),
        active_detectors=active,
        timestamp=time.time(),
    )


@router.get("/feeds", response_model=list[FeedSummary])
async def list_feeds(request: Request):
    ctx = _ctx(request)
    now = time.time()
    out = []
    for feed_id, feed in ctx.feeds.items():
        display_size = feed.source.display_size
        out.append(
            FeedSummary(
                id=feed_id,
                name=feed.config.name,
                running=feed.engine.is_running,
                last_frame_age_s=_last_frame_age(ctx.frame_store.last_frame_ts(feed_id), now),
                display_size=list(display_size) if display_size != (0, 0) else None,
                detector=_status_response(feed_id, feed.scheduler.status),
            )
        )
    return out


@router.get("/feeds/{feed_id}/detector", response_model=DetectorStatusResponse)
async def detector_status(feed_id: str, request: Request):
    feed = _feed(request, feed_id)
    return _status_response(feed_id, feed.scheduler.status)


@router.post("/feeds/{feed_id}/detector/activate", response_model=DetectorStatusResponse)
async def activate_detector(feed_id: str, request: Request):
    """Turn detection on. Waits for the first model load; load errors come back in the status."""
    feed = _feed(request, feed_id)
    state = await feed.scheduler.activate()
    return _status_response(feed_id, state)


@router.post("/feeds/{feed_id}/detector/deactivate", response_model=DetectorStatusResponse)
async def deactivate_detector(feed_id: str, request: Request):
    feed = _feed(request, feed_id)
    feed.scheduler.deactivate()
    return _status_response(feed_id, feed.scheduler.status)


@router.post("/feeds/{feed_id}/detector/reset", response_model=DetectorStatusResponse)
async def reset_detector(feed_id: str, request: Request):
    """Discard a failed model session so the next activation loads a fresh one."""
    feed = _feed(request, feed_id)
    feed.scheduler.reset_session()
    return _status_response(feed_id, feed.scheduler.status)


@router.get("/feeds/{feed_id}/detections", response_model=DetectionSetResponse)
async def current_detections(feed_id: str, request: Request):
    feed = _feed(request, feed_id)
    return _detections_response(feed_id, feed.scheduler.detections)


@router.get("/feeds/{feed_id}/snapshot.jpg")
async def snapshot(feed_id: str, request: Request):
    _feed(request, feed_id)
    ctx = _ctx(request)
    jpg = ctx.frame_store.get_jpeg(feed_id, quality=ctx.config.web.jpeg_quality)
    if jpg is None:
        raise HTTPException(status_code=503, detail=f"No frame available for feed {feed_id}")
    return Response(content=jpg, media_type="image/jpeg")


def mjpeg_chunks(frame_store, feed_id: str, fps: int = 10, quality: int = 80) -> Iterable[bytes]:
    """Yield multipart MJPEG chunks from the frame store."""
    fps = max(1, min(30, int(fps)))
    delay = 1.0 / fps
    while True:
        jpg = frame_store.get_jpeg(feed_id, quality=quality)
        if jpg is not None:
            yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpg + b"\r\n"
        time.sleep(delay)


@router.get("/feeds/{feed_id}/stream.mjpg")
async def stream(feed_id: str, request: Request):
    _feed(request, feed_id)
    ctx = _ctx(request)
    return StreamingResponse(
        mjpeg_chunks(ctx.frame_store, feed_id, ctx.config.web.stream_fps, ctx.config.web.jpeg_quality),
        media_type="multipart/x-mixed-replace; boundary=frame",
    )
