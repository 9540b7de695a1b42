"""
IAM Control Plane - Main Application Entry Point
Multi-tenant identity provisioning on top of Keycloak
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import structlog

from iam_service.core.config import get_settings
from iam_service.core.database import init_db
from iam_service.core.errors import register_exception_handlers
from iam_service.idp.client import IdpError, KeycloakAdminClient
from iam_service.api import access, reference, tenant_config, tenants, users

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger(__name__)
settings = get_settings()

logging.basicConfig(
    format="%(message)s",
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing IAM control plane")
    if settings.AUTO_CREATE_SCHEMA:
        init_db()
    else:
        logger.info("Database managed by Alembic migrations")

    idp_client = KeycloakAdminClient(settings)
    try:
        idp_client.open()
    except IdpError as e:
        # Session is re-acquired on first use
        logger.error(f"Identity provider unavailable at startup: {e}")
    app.state.idp_client = idp_client

    yield

    # Shutdown
    idp_client.close()
    logger.info("Shutting down IAM control plane")


# Create FastAPI application
app = FastAPI(
    title="IAM Control Plane API",
    description="Tenant provisioning, auth configuration and token verification",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(tenants.router, prefix="/tenants", tags=["tenants"])
app.include_router(tenant_config.router, prefix="/tenant-config", tags=["tenant-config"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(access.groups_router, prefix="/groups", tags=["groups"])
app.include_router(access.roles_router, prefix="/roles", tags=["roles"])
app.include_router(reference.router, tags=["reference"])


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "iam-control-plane"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "iam_service.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
