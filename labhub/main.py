from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .db import Base, build_engine, build_session_factory
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router
from .routes.campuses import router as campuses_router
from .routes.equipment import router as equipment_router
from .routes.incidents import router as incidents_router
from .routes.maintenance import router as maintenance_router
from .routes.audit_logs import router as audit_logs_router
from .routes.notifications import router as notifications_router
from .routes.users import router as users_router
from .routes.cron import router as cron_router
from .routes.reports import router as reports_router
from .services.automation import AutomationService
from .services.dispatch import DispatchQueue, ExternalNotifier
from .services.errors import LifecycleError


logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    setup_logging()
    settings = settings or Settings()
    app = FastAPI(title=settings.app_name)

    # One configuration object, built here and shared through app.state
    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.dispatch_queue = DispatchQueue(ExternalNotifier(settings))
    app.state.automation = AutomationService(app.state.dispatch_queue)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(LifecycleError)
    async def _lifecycle_error(request: Request, exc: LifecycleError):
        logger.info("request_rejected", path=request.url.path, error=exc.kind, message=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(SQLAlchemyError)
    async def _database_error(request: Request, exc: SQLAlchemyError):
        logger.error("database_error", path=request.url.path, method=request.method, error=str(exc), exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "InternalError", "message": "Internal server error"},
        )

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(campuses_router)
    app.include_router(equipment_router)
    app.include_router(incidents_router)
    app.include_router(maintenance_router)
    app.include_router(audit_logs_router)
    app.include_router(notifications_router)
    app.include_router(reports_router)
    app.include_router(cron_router)

    # Metrics
    if settings.metrics_enabled:
        Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        logger.info("startup", environment=settings.environment)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)

    @app.on_event("shutdown")
    def _shutdown():
        app.state.dispatch_queue.shutdown(timeout=10)
        engine.dispose()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
