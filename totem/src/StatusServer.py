"""StatusServer: FastAPI application exposing the status endpoint.

Routes:
    GET /api/status -> 200 StatusSnapshot JSON
                    -> 500 {"error": "upstream_failed"} when price or info failed
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .StatusAggregator import AggregationError
from .UpstreamFetcher import UpstreamFetcher

if TYPE_CHECKING:
    from .StatusAggregator import StatusAggregator

logger = logging.getLogger(__name__)

UPSTREAM_FAILED_BODY = {"error": "upstream_failed"}


def create_app(aggregator: StatusAggregator) -> FastAPI:
    """Create the FastAPI application.

    :param aggregator: Aggregator that produces the status snapshots.
    :returns: Configured FastAPI app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await UpstreamFetcher.close_shared_clients()
        logger.info("Upstream clients closed")

    app = FastAPI(title="Zcash Totem", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/api/status")
    async def status() -> JSONResponse:
        """Return the aggregated status snapshot."""
        try:
            snapshot = await aggregator.get_status()
        except AggregationError:
            logger.exception("Status error")
            return JSONResponse(status_code=500, content=UPSTREAM_FAILED_BODY)
        return JSONResponse(content=snapshot.to_dict())

    return app
