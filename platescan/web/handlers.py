import logging

from aiohttp import web

from ..cv.frame_source import DeviceAcquisitionError
from ..pipeline.runner import PlateScanPipeline

log = logging.getLogger(__name__)

PIPELINE_KEY = web.AppKey("pipeline", PlateScanPipeline)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _json(data, status=200):
    return web.json_response(data, status=status)


def _pipeline(request: web.Request) -> PlateScanPipeline:
    return request.app[PIPELINE_KEY]


# ---------- API handlers ----------

async def api_status(request: web.Request):
    """Get pipeline status, throttle counters and feedback state."""
    try:
        return _json(_pipeline(request).get_status())
    except Exception as e:
        log.warning("Failed to build status: %s", e)
        return _json({"error": str(e)}, 500)


async def api_frame(request: web.Request):
    """Get the latest annotated frame as JPEG."""
    renderer = _pipeline(request).renderer
    frame_buffer = getattr(renderer, "frame_buffer", None)
    latest = frame_buffer.get_latest() if frame_buffer is not None else None
    if latest is None:
        log.debug("Frame requested but none rendered yet")
        return _json({"error": "no frame available"}, 404)

    jpeg_data, metadata = latest
    headers = dict(NO_CACHE_HEADERS)
    headers["X-Frame-Width"] = str(metadata.width)
    headers["X-Frame-Height"] = str(metadata.height)
    headers["X-Frame-Timestamp"] = str(metadata.timestamp)
    return web.Response(body=jpeg_data, content_type="image/jpeg", headers=headers)


async def api_restart(request: web.Request):
    """Re-initiate camera acquisition after a device error."""
    pipeline = _pipeline(request)
    try:
        await pipeline.restart()
    except DeviceAcquisitionError as e:
        return _json({"ok": False, "error": str(e), "status": pipeline.state.status}, 503)
    return _json({"ok": True, "status": pipeline.state.status})


async def api_ping(request: web.Request):
    return _json({"ok": True})
