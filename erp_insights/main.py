"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from erp_insights.core.config import settings
from erp_insights.core.middleware import setup_middleware
from erp_insights.core.exceptions import ERPInsightsError, PermissionScopeError

from erp_insights.api.auth import router as auth_router
from erp_insights.api.sap import router as sap_router
from erp_insights.api.permissions import router as permissions_router
from erp_insights.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("erp_insights")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting ERP Insights API")
    from erp_insights.db.session import init_db, SessionLocal
    from erp_insights.db.seeds.seed_admin import seed_admin

    init_db()
    db = SessionLocal()
    try:
        seed_admin(db)
    finally:
        db.close()

    yield

    logger.info("Shutting down ERP Insights API")


app = FastAPI(
    title="ERP Insights API",
    description="SAP OData gateway and role-based access for the ERP dashboard",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(ERPInsightsError)
async def erp_exception_handler(request: Request, exc: ERPInsightsError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


@app.exception_handler(PermissionScopeError)
async def permission_scope_handler(request: Request, exc: PermissionScopeError):
    logger.error("Permissions queried outside provider scope on %s", request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(sap_router, prefix="/api")
app.include_router(permissions_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
