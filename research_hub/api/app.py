"""
FastAPI application for the research hub.

A thin HTTP adapter over RequestGate: it extracts the bearer credential,
forwards the call, and maps AccessError reason codes to status codes. No
authorization logic lives here.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from research_hub import __version__
from research_hub.config import Settings, get_settings
from research_hub.core.errors import AccessError, InvalidInput, ReasonCode
from research_hub.seed import load_seed
from research_hub.services.gate import RequestGate
from research_hub.storage import MetadataStorage, create_local_storage

logger = logging.getLogger(__name__)


STATUS_BY_REASON: dict[ReasonCode, int] = {
    ReasonCode.UNAUTHENTICATED: 401,
    ReasonCode.NOT_AUTHORIZED: 403,
    ReasonCode.NOT_FOUND: 404,
    ReasonCode.INVALID_REFERENCE: 409,
    ReasonCode.INVALID_INPUT: 400,
    ReasonCode.CONFLICT: 409,
    ReasonCode.STORE_UNAVAILABLE: 503,
}

bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# Request Models
# =============================================================================


class TeamMemberRequest(BaseModel):
    user_id: str


class AssignTaskRequest(BaseModel):
    user_id: str | None = None


class CreateCommentRequest(BaseModel):
    content: Any = None
    attachments: list[dict[str, Any]] | None = None


# =============================================================================
# Dependencies
# =============================================================================


def get_gate(request: Request) -> RequestGate:
    return request.app.state.gate


def get_credential(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Raw bearer token, or None; the gate decides what that means."""
    return credentials.credentials if credentials else None


def ok(data: Any, **extra: Any) -> dict[str, Any]:
    return {"success": True, "data": data, **extra}


def ok_list(items: list[Any]) -> dict[str, Any]:
    return ok(items, count=len(items))


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    storage: MetadataStorage | None = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Defaults to get_settings()
        storage: Defaults to a fresh in-memory store
    """
    settings = settings or get_settings()
    gate = RequestGate(storage or create_local_storage(), settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        from research_hub.integrations.sentry import init_sentry
        if init_sentry(settings):
            logger.info("Sentry error tracking enabled")

        if settings.seed_file:
            await load_seed(gate.storage, settings.seed_file)

        logger.info("Research hub API starting in %s mode", settings.environment)
        yield
        logger.info("Research hub API shutting down")

    app = FastAPI(
        title="Research Hub API",
        description="Projects, tasks and comments behind one authorization core",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gate = gate
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
        status = STATUS_BY_REASON.get(exc.reason, 500)
        if exc.retryable:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        error = InvalidInput("Invalid request", fields=fields)
        return JSONResponse(status_code=400, content=error.to_dict())

    register_routes(app)
    return app


# =============================================================================
# Routes
# =============================================================================


def register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "research-hub-api"}

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @app.get("/api/auth/me")
    async def me(
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.me(credential))

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    @app.get("/api/projects")
    async def list_projects(
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok_list(await gate.list_projects(credential))

    @app.post("/api/projects", status_code=201)
    async def create_project(
        body: dict[str, Any] = Body(...),
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.create_project(credential, body))

    @app.get("/api/projects/{project_id}")
    async def read_project(
        project_id: str,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.read_project(credential, project_id))

    @app.put("/api/projects/{project_id}")
    async def write_project(
        project_id: str,
        body: dict[str, Any] = Body(...),
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.write_project(credential, project_id, body))

    @app.delete("/api/projects/{project_id}")
    async def delete_project(
        project_id: str,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.delete_project(credential, project_id))

    @app.post("/api/projects/{project_id}/team")
    async def add_team_member(
        project_id: str,
        request: TeamMemberRequest,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.add_team_member(credential, project_id, request.user_id))

    @app.delete("/api/projects/{project_id}/team/{user_id}")
    async def remove_team_member(
        project_id: str,
        user_id: str,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.remove_team_member(credential, project_id, user_id))

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    @app.get("/api/tasks")
    async def list_tasks(
        project_id: str | None = None,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok_list(await gate.list_tasks(credential, project_id))

    @app.post("/api/tasks", status_code=201)
    async def create_task(
        body: dict[str, Any] = Body(...),
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.create_task(credential, body))

    @app.get("/api/tasks/{task_id}")
    async def read_task(
        task_id: str,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.read_task(credential, task_id))

    @app.put("/api/tasks/{task_id}")
    async def write_task(
        task_id: str,
        body: dict[str, Any] = Body(...),
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.write_task(credential, task_id, body))

    @app.put("/api/tasks/{task_id}/assign")
    async def assign_task(
        task_id: str,
        request: AssignTaskRequest,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.assign_task(credential, task_id, request.user_id))

    @app.delete("/api/tasks/{task_id}")
    async def delete_task(
        task_id: str,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.delete_task(credential, task_id))

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    @app.get("/api/projects/{project_id}/comments")
    async def list_comments(
        project_id: str,
        page: int = 1,
        limit: int = 50,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        result = await gate.list_comments(credential, project_id, page=page, limit=limit)
        return ok(result["items"], pagination=result["pagination"])

    @app.post("/api/projects/{project_id}/comments", status_code=201)
    async def create_comment(
        project_id: str,
        request: CreateCommentRequest,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.create_comment(
            credential, project_id, request.content, request.attachments
        ))

    @app.get("/api/comments/{comment_id}")
    async def read_comment(
        comment_id: str,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.read_comment(credential, comment_id))

    @app.delete("/api/comments/{comment_id}")
    async def delete_comment(
        comment_id: str,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok(await gate.delete_comment(credential, comment_id))

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @app.get("/api/users")
    async def list_users(
        role: str | None = None,
        search: str | None = None,
        credential: str | None = Depends(get_credential),
        gate: RequestGate = Depends(get_gate),
    ):
        return ok_list(await gate.list_users(credential, role=role, search=search))


app = create_app()
