"""Read-only routes: health, watcher status, resource search."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from kindwatch.api.schemas import (
    HealthResponse,
    KindStatus,
    ResourceItem,
    SearchResponse,
    StatusResponse,
)
from kindwatch.store.resource_store import SEARCH_LIMIT

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    from kindwatch import __version__

    return HealthResponse(version=__version__)


@router.get("/status", response_model=StatusResponse)
def status(request: Request) -> StatusResponse:
    supervisor = request.app.state.supervisor
    store = request.app.state.store
    kinds = [
        KindStatus(resource=resource, state=str(state))
        for resource, state in sorted(supervisor.states().items())
    ]
    return StatusResponse(
        watching=supervisor.is_watching(),
        active_loops=supervisor.active_loops(),
        kinds=kinds,
        stored_resources=store.count() if store is not None else None,
    )


@router.get("/resources", response_model=SearchResponse)
def search_resources(
    request: Request,
    q: str = Query(default="", max_length=256),
    limit: int = Query(default=SEARCH_LIMIT, ge=1, le=SEARCH_LIMIT),
) -> SearchResponse:
    store = request.app.state.store
    if store is None:
        raise HTTPException(status_code=503, detail="resource store is not enabled")
    rows = store.search(q, limit=limit)
    items = [
        ResourceItem(
            kind=row.kind,
            api_version=row.api_version,
            namespace=row.namespace,
            name=row.name,
            resource_version=row.resource_version,
        )
        for row in rows
    ]
    return SearchResponse(query=q, count=len(items), items=items)
