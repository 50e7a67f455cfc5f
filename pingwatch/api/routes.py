"""Read-only query routes over the engine's endpoint snapshots.

Endpoints:
  GET /endpoints/               — URLs of every monitored endpoint
  GET /endpoints/{name}         — latest status snapshot
  GET /endpoints/{name}/output  — latest check output (text/plain)
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from pingwatch.engine.engine import EndpointNotFoundError

logger = logging.getLogger(__name__)

endpoint_router = APIRouter()


@endpoint_router.get("/endpoints/")
def list_endpoints(request: Request) -> dict[str, Any]:
    engine = request.app.state.engine
    base = str(request.base_url).rstrip("/")
    return {"endpoints": [f"{base}/endpoints/{name}" for name in engine.list_endpoint_names()]}


@endpoint_router.get("/endpoints/{name}")
def endpoint_status(name: str, request: Request) -> dict[str, Any]:
    engine = request.app.state.engine
    logger.debug("status requested for %s", name)
    try:
        status = engine.get_status(name)
    except EndpointNotFoundError:
        raise HTTPException(status_code=404, detail=f"Endpoint not found: {name}")
    return {"name": name, **status.to_dict()}


@endpoint_router.get("/endpoints/{name}/output")
def endpoint_output(name: str, request: Request) -> Response:
    engine = request.app.state.engine
    try:
        output = engine.get_latest_output(name)
    except EndpointNotFoundError:
        raise HTTPException(status_code=404, detail=f"Endpoint not found: {name}")
    if output is None:
        raise HTTPException(status_code=404, detail=f"No output has been recorded (yet) for {name}")
    return Response(content=output, media_type="text/plain")
