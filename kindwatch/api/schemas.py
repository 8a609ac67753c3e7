"""Response models for the kindwatch REST API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class KindStatus(BaseModel):
    resource: str
    state: str


class StatusResponse(BaseModel):
    watching: bool
    active_loops: int
    kinds: list[KindStatus] = Field(default_factory=list)
    stored_resources: int | None = None


class ResourceItem(BaseModel):
    kind: str
    api_version: str
    namespace: str
    name: str
    resource_version: str


class SearchResponse(BaseModel):
    query: str
    count: int
    items: list[ResourceItem] = Field(default_factory=list)
