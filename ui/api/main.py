"""FastAPI layer that exposes the lore operations over HTTP."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query as FastAPIQuery
from pydantic import BaseModel, Field

from application.services.lore_repository import LoreRepository
from application.services.retrieval_service import DEFAULT_CONTEXT_LENGTH, RetrievalService
from application.use_cases.ingest_lore import ingest_records
from domain.entities import Category, LoreResult
from domain.errors import LoreSearchError, NotInitializedError, UpstreamUnavailableError
from infrastructure.config import ContainerConfig, build_default_container
from ui.logging_utils import setup_logging

logger = logging.getLogger(__name__)

container = build_default_container(ContainerConfig.from_env())


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    try:
        container.retrieval_service.initialize()
    except LoreSearchError as exc:
        logger.error("Lore service unavailable: %s", exc)
    yield


app = FastAPI(title="LoreSearch API", lifespan=lifespan)


def get_service() -> RetrievalService:
    return container.retrieval_service


def get_repository() -> LoreRepository:
    return container.repository


class LoreResultPayload(BaseModel):
    title: str
    category: Category
    relevance: float
    text: str
    source_url: str | None = None

    @classmethod
    def from_result(cls, result: LoreResult) -> LoreResultPayload:
        return cls(
            title=result.title,
            category=result.category,
            relevance=result.relevance,
            text=result.text,
            source_url=result.source_url,
        )


class SearchResponse(BaseModel):
    query: str
    results: list[LoreResultPayload]


class ContextRequest(BaseModel):
    situation: str
    entities: list[str] = Field(default_factory=list)
    max_length: int = Field(default=DEFAULT_CONTEXT_LENGTH, gt=0)


class ContextResponse(BaseModel):
    text: str
    source_count: int
    sources: list[str]


class StatusResponse(BaseModel):
    ready: bool
    document_count: int | None = None


class IngestRequest(BaseModel):
    records: list[dict[str, Any]]


class IngestResponse(BaseModel):
    total: int
    indexed: int
    skipped: int
    errors: int


def _parse_category(value: str | None) -> Category:
    try:
        return Category.parse(value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _http_error(exc: LoreSearchError) -> HTTPException:
    if isinstance(exc, NotInitializedError):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, UpstreamUnavailableError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.get("/search", response_model=SearchResponse)
def search_endpoint(
    q: str = FastAPIQuery(..., description="Lore query"),
    category: str | None = FastAPIQuery(None, description="Category filter"),
    limit: int = FastAPIQuery(5, ge=1, le=10),
    service: RetrievalService = Depends(get_service),
) -> SearchResponse:
    parsed = _parse_category(category)
    try:
        results = service.search(q, limit=limit, category=parsed)
    except LoreSearchError as exc:
        raise _http_error(exc) from exc
    return SearchResponse(query=q, results=[LoreResultPayload.from_result(result) for result in results])


@app.get("/lookup", response_model=LoreResultPayload)
def lookup_endpoint(
    name: str = FastAPIQuery(..., description="Entity name"),
    category: str | None = FastAPIQuery(None, description="Expected category"),
    service: RetrievalService = Depends(get_service),
) -> LoreResultPayload:
    parsed = _parse_category(category) if category else None
    try:
        result = service.lookup_entity(name, parsed)
    except LoreSearchError as exc:
        raise _http_error(exc) from exc
    if result is None:
        raise HTTPException(status_code=404, detail=f"Entity not found: {name}")
    return LoreResultPayload.from_result(result)


@app.post("/context", response_model=ContextResponse)
def context_endpoint(
    payload: ContextRequest,
    service: RetrievalService = Depends(get_service),
) -> ContextResponse:
    try:
        context = service.get_context_for_situation(payload.situation, payload.entities, max_length=payload.max_length)
    except LoreSearchError as exc:
        raise _http_error(exc) from exc
    return ContextResponse(text=context.text, source_count=context.source_count, sources=context.sources)


@app.get("/status", response_model=StatusResponse)
def status_endpoint(service: RetrievalService = Depends(get_service)) -> StatusResponse:
    if not service.is_ready():
        return StatusResponse(ready=False)
    return StatusResponse(ready=True, document_count=service.document_count())


@app.post("/ingest", response_model=IngestResponse)
def ingest_endpoint(
    payload: IngestRequest,
    repository: LoreRepository = Depends(get_repository),
) -> IngestResponse:
    try:
        report = ingest_records(payload.records, repository=repository)
    except LoreSearchError as exc:
        raise _http_error(exc) from exc
    return IngestResponse(
        total=report.total,
        indexed=report.indexed,
        skipped=report.skipped,
        errors=len(report.errors),
    )
