import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.core.errors import DomainError, Unavailable
from app.core.logging_setup import configure_logging
from app.routers import admin, auth, budgets, families, health, invitations

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Family Finance API",
    version="1.0.0",
    description="API for family budgets, budget alerts, family membership and invitations.",
    # We proxy the API under /api at the edge. Swagger needs a fixed openapi URL
    # that includes this prefix; we provide a custom /docs route below.
    docs_url=None,
    # Ensure the generated OpenAPI schema includes the external base path (so "Try it out" hits /api/v1/...).
    root_path=settings.root_path,
)


# Custom Swagger UI that points at the externally reachable OpenAPI URL.
@app.get("/docs", include_in_schema=False)
def swagger_ui():
    prefix = (settings.root_path or "").rstrip("/")
    openapi_url = f"{prefix}{app.openapi_url}"
    return get_swagger_ui_html(openapi_url=openapi_url, title=f"{app.title} - Docs")


@app.exception_handler(DomainError)
def domain_error_handler(_: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": exc.kind},
        headers=exc.headers,
    )


@app.exception_handler(OperationalError)
def database_unavailable_handler(request: Request, exc: OperationalError):
    logger.warning("database unavailable while serving %s %s: %s", request.method, request.url.path, exc.orig)
    return domain_error_handler(request, Unavailable("database unavailable, retry later"))


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(families.router)
app.include_router(budgets.router)
app.include_router(invitations.router)
app.include_router(admin.router)
