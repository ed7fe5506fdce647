"""
StorePulse - Main Application
==============================

Retail customer-feedback escalation service.

Modules:
- Escalation: negative reviews become tasks for the responsible team lead,
  tracked against a 24-hour SLA

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, policy file, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from storepulse.config import settings
from storepulse.core import ApplicationException

# Infrastructure
from storepulse.infrastructure.database import (
    init_database,
    close_database,
    create_tables,
    get_session_context,
)

# Escalation Module
from storepulse.escalation.application import EscalationJobRunner
from storepulse.escalation.infrastructure import SQLAlchemyUnitOfWork
from storepulse.escalation.infrastructure.external import (
    EscalationScheduler,
    SLAPolicyManager,
)
from storepulse.escalation.interfaces import escalation_router

# Logging and middleware
from storepulse.shared.infrastructure.logging import setup_logging, get_logger
from storepulse.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

logger = get_logger(__name__)


def build_scheduler(policy_manager: SLAPolicyManager) -> EscalationScheduler:
    """Scheduler with the daily assignment and the periodic SLA sweep."""

    async def daily_assignment_job():
        async with get_session_context() as session:
            await EscalationJobRunner(
                SQLAlchemyUnitOfWork(session), policy_manager
            ).run_daily_assignment()

    async def sla_sweep_job():
        async with get_session_context() as session:
            await EscalationJobRunner(
                SQLAlchemyUnitOfWork(session), policy_manager
            ).run_sla_sweep()

    scheduler = EscalationScheduler()
    scheduler.add_daily_job(
        "daily_task_assignment",
        daily_assignment_job,
        hour=settings.assignment_cron_hour,
        minute=settings.assignment_cron_minute,
    )
    scheduler.add_interval_job(
        "sla_status_sweep",
        sla_sweep_job,
        seconds=settings.sla_sweep_interval_seconds,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database (and tables in development)
    3. Load SLA policy and watch it for changes
    4. Start the escalation scheduler

    SHUTDOWN:
    1. Stop the scheduler
    2. Stop the policy watcher
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting StorePulse", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    if settings.create_tables_on_startup:
        logger.info("Creating database tables")
        await create_tables()

    policy_manager = SLAPolicyManager()
    policy_manager.load(settings.sla_policy_path)
    policy_manager.start_watching()
    app.state.sla_policy_manager = policy_manager

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler(policy_manager)
        await scheduler.start()
    else:
        logger.info("Escalation scheduler disabled")
    app.state.scheduler = scheduler

    logger.info("StorePulse started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down StorePulse")

    if scheduler:
        await scheduler.stop()

    policy_manager.stop_watching()

    await close_database()

    logger.info("StorePulse shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="StorePulse API",
    description="""
    ## Retail Feedback Escalation

    Customers rate shop sections; every review rated below 4 becomes a task
    for the team lead responsible for that section.

    **SLA rules:**
    - Resolved within 24 hours of assignment: `ON_TIME`
    - Resolved after 24 hours: `DELAYED`
    - Open: `PENDING` (display tiers: within_24h, within_48h, overdue)

    **Jobs:**
    - Daily task assignment (09:00 by default)
    - Hourly SLA sweep of open tasks
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)
app.state.settings = settings

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added last so it runs first and the correlation id is set for logging
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(escalation_router)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(request.app.state, "scheduler", None)
    policy_manager = getattr(request.app.state, "sla_policy_manager", None)

    checks = {
        "sla_policy": "loaded" if policy_manager else "default",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
    }

    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "escalation": {
                "prefix": "/escalation",
                "endpoints": [
                    "POST /escalation/reviews/{id}/assign - Escalate one review",
                    "GET /escalation/tasks - List tasks",
                    "GET /escalation/tasks/{id} - Get task",
                    "PATCH /escalation/tasks/{id}/resolve - Resolve task",
                    "GET /escalation/dashboard - SLA summary",
                    "GET /escalation/team-leads/{id}/dashboard - Team lead summary",
                    "POST /escalation/cron/assignment - Run daily assignment",
                    "POST /escalation/cron/sla - Run SLA sweep",
                    "GET /escalation/cron/logs - Recent batch runs"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storepulse.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
