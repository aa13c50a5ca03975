"""
Policy Engine - Main Application
=================================

Temporal policies for a conversational customer-service platform.

Modules:
- Business Hours: open/closed verdicts and out-of-hours auto-replies
- SLA: first-response and resolution deadline verdicts
- Monitoring: adaptive polling of instance statuses with change events
- Policy: composition root, configuration stores and HTTP API

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: PolicyEngine, poller and DTOs
- Domain: Pure evaluators, value objects and events
- Infrastructure: YAML store, status endpoint client, Slack sink
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from src.config import get_settings
from src.core import ApplicationException

# Monitoring Module - External services
from src.monitoring.infrastructure import HTTPStatusLookup, SlackStatusNotifier

# Policy Module
from src.policy.application import PolicyEngine
from src.policy.infrastructure import YAMLConfigStore
from src.policy.interfaces import policy_router

# Shared
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from src.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Open the policy config store and watch it
    3. Create the status lookup and Slack sink
    4. Build the PolicyEngine and load the owner's records

    SHUTDOWN:
    1. Stop monitoring and the scheduler
    2. Stop the config watcher
    3. Close HTTP clients
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Policy Engine", extra={
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "owner_id": settings.owner_id
    })

    logger.info("Loading policy configuration", extra={"path": str(settings.policy_config_path)})
    config_store = YAMLConfigStore(settings.policy_config_path)
    if settings.watch_config_file:
        config_store.start_watching()

    status_lookup = HTTPStatusLookup(settings)
    slack_notifier = SlackStatusNotifier(settings)
    if not settings.status_endpoint_url:
        logger.warning("Status endpoint not configured - every status lookup will fail")

    engine = PolicyEngine(
        owner_id=settings.owner_id,
        schedule_store=config_store,
        sla_store=config_store,
        lookup=status_lookup,
        settings=settings
    )
    if slack_notifier.is_configured:
        engine.subscribe(slack_notifier.notify)
    else:
        logger.info("Slack webhook not configured - status changes will only be logged")

    await engine.refresh()

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.policy_engine = engine

    logger.info("Policy Engine started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Policy Engine")

    await engine.close()
    config_store.stop_watching()
    await status_lookup.close()
    await slack_notifier.close()

    logger.info("Policy Engine shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Policy Engine API",
    description="""
    ## Temporal Policy Engine

    Business hours, SLA deadlines and instance status monitoring for a
    conversational customer-service platform.

    ---

    ### Business Hours

    - `GET /policy/business-hours/status` - Open/closed verdict and auto-reply
    - `GET /policy/business-hours/config` - Current record
    - `PUT /policy/business-hours/config` - Update the record

    ### SLA

    - `GET /policy/sla/verdict` - Verdict for one conversation
    - `GET /policy/sla/config` - Current record
    - `PUT /policy/sla/config` - Update the record

    ### Monitoring

    - `POST /policy/monitoring/start` - Monitor a set of instances
    - `POST /policy/monitoring/stop` - Stop monitoring
    - `POST /policy/monitoring/check` - Check everything now
    - `GET /policy/monitoring` - Session snapshot

    Polling runs every 30 seconds, every 10 while an instance is connecting.

    ---
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    debug=settings.debug,
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(policy_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "business_hours_config": "loaded",
                        "sla_config": "missing",
                        "monitoring": "active"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports which records are loaded and the monitoring phase.
    """
    engine = getattr(request.app.state, "policy_engine", None)
    if engine is None:
        return {
            "status": "starting",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": {}
        }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": {
            "business_hours_config": "loaded" if engine.schedule_config else "missing",
            "sla_config": "loaded" if engine.sla_config else "missing",
            "monitoring": engine.monitor_phase()
        }
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Policy Engine",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "policy": {
                "prefix": "/policy",
                "endpoints": [
                    "GET /policy/business-hours/status - Open/closed verdict",
                    "GET|PUT /policy/business-hours/config - Business hours record",
                    "GET /policy/sla/verdict - SLA verdict",
                    "GET|PUT /policy/sla/config - SLA record",
                    "POST /policy/config/refresh - Reload records",
                    "POST /policy/monitoring/start - Start monitoring",
                    "POST /policy/monitoring/stop - Stop monitoring",
                    "POST /policy/monitoring/check - Check now",
                    "GET /policy/monitoring - Monitoring snapshot"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
