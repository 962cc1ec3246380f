from __future__ import annotations

import logging

from aiohttp import web

from ..pipeline.runner import PlateScanPipeline
from .handlers import PIPELINE_KEY, api_frame, api_ping, api_restart, api_status

log = logging.getLogger(__name__)


def make_app(pipeline: PlateScanPipeline) -> web.Application:
    app = web.Application()
    app[PIPELINE_KEY] = pipeline

    app.add_routes([
        web.get("/api/status", api_status),
        web.get("/api/frame", api_frame),
        web.post("/api/restart", api_restart),

        # Health check
        web.get("/api/ping", api_ping),
    ])
    return app


async def start_site(pipeline: PlateScanPipeline, host: str, port: int) -> web.AppRunner:
    """Start the status server inside the running event loop."""
    runner = web.AppRunner(make_app(pipeline))
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    log.info(f"Status server listening on http://{host}:{port}")
    return runner
