"""FastAPI application."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from memberforge.auth import ActorContext
from memberforge.cache import RecordCache
from memberforge.config import Settings, configure_logging
from memberforge.entities import BulkResult
from memberforge.errors import AppError, ValidationError, new_operation_id
from memberforge.events import EventService, LoggingEventSink
from memberforge.membership import (
    MEMBERSHIP_CATEGORY_RULES,
    MembershipCategoryService,
    build_membership_service,
    create_membership_repository,
)
from memberforge.persistence import ListQuery, SQLiteRepository, parse_filter_params

logger = logging.getLogger(__name__)

PREFIX = "/api/membership-categories"
LIST_PARAMS = ("page", "pageSize", "includeInactive")


# Global instances (initialized on startup)
settings: Settings | None = None
repository: SQLiteRepository | None = None
service: MembershipCategoryService | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    global settings, repository, service

    settings = Settings.from_env(Path.cwd())
    configure_logging(settings.log_level)

    repository = create_membership_repository(settings.database)
    repository.connect()

    service = build_membership_service(
        repository,
        events=EventService([LoggingEventSink()]),
        cache=RecordCache(settings.cache_size),
        max_page_size=settings.max_page_size,
        read_retries=settings.read_retries,
    )
    logger.info("memberforge API started (database %s)", settings.database.url)

    yield

    # Cleanup
    if repository:
        repository.close()


app = FastAPI(title="memberforge API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("MEMBERFORGE_CORS_ORIGINS", "http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Actor Middleware ---


@app.middleware("http")
async def actor_middleware(request: Request, call_next):
    """Resolve the actor from headers set by the upstream gateway."""
    request.state.actor = None
    user_id = request.headers.get("X-User-Id")
    if user_id:
        request.state.actor = ActorContext(
            user_id=user_id,
            tenant_id=request.headers.get("X-Tenant-Id"),
            role=request.headers.get("X-Actor-Role"),
        )
    request.state.operation_id = request.headers.get("X-Operation-Id")
    return await call_next(request)


# --- Error Handlers ---


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    op_id = getattr(request.state, "operation_id", None) or new_operation_id("error")
    logger.exception(
        "Unhandled error on %s %s - Operation: %s", request.method, request.url.path, op_id
    )
    message = "Internal server error"
    return JSONResponse(
        status_code=500,
        content={
            "message": message,
            "code": "INTERNAL_ERROR",
            "errors": [message],
            "operationId": op_id,
        },
    )


def _service() -> MembershipCategoryService:
    if not service:
        raise HTTPException(500, "Not initialized")
    return service


def _actor(request: Request) -> ActorContext | None:
    return request.state.actor


def _operation_id(request: Request) -> str | None:
    return request.state.operation_id


# --- Health ---


@app.get("/api/health")
async def health() -> dict[str, Any]:
    return {"status": "ok", "database": bool(repository and repository.conn)}


# --- Membership Category Endpoints ---


class CreateRequest(BaseModel):
    """Request body for create and validate operations."""
    data: dict[str, Any]


class UpdateRequest(BaseModel):
    """Request body for partial updates."""
    data: dict[str, Any]


class BulkCreateRequest(BaseModel):
    items: list[dict[str, Any]]


@app.post(PREFIX)
async def create_membership_category(request: CreateRequest, http_request: Request):
    """Create a membership category."""
    svc = _service()
    actor = _actor(http_request)
    saved = await svc.create(request.data, actor, _operation_id(http_request))
    return JSONResponse(
        status_code=201,
        content={
            "data": svc.present(saved.entity, actor),
            "warnings": [w.to_dict() for w in saved.warnings],
        },
    )


@app.post(f"{PREFIX}/bulk")
async def bulk_create_membership_categories(request: BulkCreateRequest, http_request: Request):
    """Create several categories; each item succeeds or fails on its own."""
    svc = _service()
    actor = _actor(http_request)
    result: BulkResult = await svc.bulk_create(request.items, actor, _operation_id(http_request))

    items = []
    for item in result.items:
        if item.ok:
            items.append({
                "index": item.index,
                "ok": True,
                "data": svc.present(item.entity, actor),
                "warnings": [w.to_dict() for w in item.warnings],
            })
        else:
            items.append({
                "index": item.index,
                "ok": False,
                "error": item.error.to_dict(),
            })

    return {"created": result.created, "failed": result.failed, "items": items}


@app.post(f"{PREFIX}/validate")
async def validate_membership_category(
    request: CreateRequest, http_request: Request
) -> dict[str, Any]:
    """Dry-run a create without persisting anything."""
    result = await _service().validate(
        request.data, _actor(http_request), _operation_id(http_request)
    )
    return result.to_dict()


@app.get(PREFIX)
async def list_membership_categories(
    http_request: Request,
    page: int = 1,
    pageSize: int = 20,
    includeInactive: bool = False,
) -> dict[str, Any]:
    """List categories. Other query parameters are filters (field, field__contains, field__in)."""
    svc = _service()
    actor = _actor(http_request)
    try:
        conditions = parse_filter_params(http_request.query_params, reserved=LIST_PARAMS)
    except ValueError as e:
        raise ValidationError(str(e), operation_id=_operation_id(http_request)) from None

    query = ListQuery(
        conditions=conditions,
        page=page,
        page_size=pageSize,
        include_inactive=includeInactive,
    )
    result = await svc.list(query, actor, _operation_id(http_request))
    return {
        "data": [svc.present(item, actor) for item in result.items],
        "total": result.total,
        "page": result.page,
        "pageSize": result.page_size,
        "hasMore": result.has_more,
    }


@app.get(f"{PREFIX}/rules")
async def list_rules() -> dict[str, Any]:
    """Describe the business rules applied to membership categories."""
    return {"rules": [r.describe() for r in MEMBERSHIP_CATEGORY_RULES]}


@app.get(f"{PREFIX}/for/{{kind}}/{{parent_id}}")
async def list_membership_categories_for_parent(
    kind: str, parent_id: str, http_request: Request
) -> dict[str, Any]:
    """All categories of one account or affiliate, including inactive ones."""
    svc = _service()
    actor = _actor(http_request)
    items = await svc.list_for_parent(kind, parent_id, actor, _operation_id(http_request))
    return {"data": [svc.present(item, actor) for item in items]}


@app.get(f"{PREFIX}/{{ref}}")
async def get_membership_category(ref: str, http_request: Request) -> dict[str, Any]:
    """Get one category by internal id or business id."""
    svc = _service()
    actor = _actor(http_request)
    entity = await svc.get(ref, actor, _operation_id(http_request))
    return {"data": svc.present(entity, actor)}


@app.patch(f"{PREFIX}/{{ref}}")
async def update_membership_category(
    ref: str, request: UpdateRequest, http_request: Request
) -> dict[str, Any]:
    """Apply a partial update."""
    svc = _service()
    actor = _actor(http_request)
    saved = await svc.update(ref, request.data, actor, _operation_id(http_request))
    return {
        "data": svc.present(saved.entity, actor),
        "warnings": [w.to_dict() for w in saved.warnings],
    }


@app.delete(f"{PREFIX}/{{ref}}")
async def delete_membership_category(ref: str, http_request: Request) -> Response:
    """Soft delete: the category becomes inactive."""
    await _service().delete(ref, _actor(http_request), _operation_id(http_request))
    return Response(status_code=204)
