"""FastAPI application entry point."""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from feedloop.core.config import settings
from feedloop.core.errors import register_exception_handlers
from feedloop.core.rate_limit import create_auth_rate_limiter, install_route_limits
from feedloop.core.structured_logging import build_log_context, configure_logging
from feedloop.db.session import engine

configure_logging()
logger = logging.getLogger("feedloop.request")

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # reports carry reporter emails and page URLs
    )
    logging.info("Sentry initialized for error tracking")


class DashboardCORSMiddleware(CORSMiddleware):
    """CORS for dashboard routes; the public widget answers with its own headers."""

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http" and scope["path"].startswith("/widget/"):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="FeeDLooP API",
    description="Bug report, initiative and feedback collection API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Route limits (slowapi) and the login/registration throttle
app.state.auth_rate_limiter = create_auth_rate_limiter()

register_exception_handlers(app)
install_route_limits(app)

app.add_middleware(
    DashboardCORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
    expose_headers=["Content-Disposition", "X-Export-Count"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "request_completed status=%s duration_ms=%.1f",
        response.status_code,
        (time.perf_counter() - started) * 1000,
        extra=build_log_context(route=request.url.path, method=request.method),
    )
    return response


# ============================================================================
# Routers
# ============================================================================

from feedloop.routers import auth, invitations, projects, reports, widget

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(projects.router, prefix="/projects", tags=["projects"])
app.include_router(reports.router, prefix="/projects/{project_id}/reports", tags=["reports"])
app.include_router(invitations.router, prefix="/projects/{project_id}/invitations", tags=["invitations"])

# Public widget (unauthenticated, CORS *)
app.include_router(widget.router, prefix="/widget", tags=["widget"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
