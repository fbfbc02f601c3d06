import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from medminder.core.clock import SystemClock
from medminder.core.config import settings
from medminder.core.database import check_db_health, close_db, connect_db, get_database
from medminder.core.errors import NotFoundError, StorageFailure
from medminder.core.firebase import init_firebase, is_initialized
from medminder.routes import agenda, medications, profiles, reminders, treatments
from medminder.services.container import Services, get_services, init_services
from medminder.services.notifications import (
    InMemoryNotificationCenter,
    MongoNotificationCenter,
    notification_service,
)
from medminder.services.trigger_dispatcher import run_trigger_dispatcher


logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


_dispatch_task = None


#------This Function builds the notification center for the configured backend---------
async def _create_notification_center(clock):
    if settings.storage_backend == "memory":
        return InMemoryNotificationCenter(clock)
    center = MongoNotificationCenter(get_database(), clock)
    await center.ensure_indexes()
    return center


#------This Function handles the lifespan events---------
@asynccontextmanager
async def lifespan(app: FastAPI):
    global _dispatch_task

    logger.info(f"Starting {settings.environment} environment")

    if settings.notifications_enabled:
        try:
            init_firebase()
            logger.info("Firebase initialized")
        except Exception as e:
            logger.error(f"Failed to initialize Firebase: {str(e)}")
            raise

    try:
        stores = await connect_db()
        logger.info(f"Storage connected ({settings.storage_backend})")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    clock = SystemClock(settings.timezone)
    center = await _create_notification_center(clock)
    services = Services(stores, center, clock, settings)
    init_services(services)

    if settings.notifications_enabled:
        _dispatch_task = asyncio.create_task(
            run_trigger_dispatcher(center, notification_service, settings.dispatch_interval_seconds)
        )
        logger.info("Reminder dispatch task started")

    try:
        results = await services.doses.resync_all()
        failed = [med_id for med_id, r in results.items() if not r.ok or r.failed]
        if failed:
            logger.warning(f"Reminder resync incomplete for {len(failed)} medication(s)")
        logger.info(f"Resynced reminders for {len(results)} medication(s)")
    except Exception as e:
        logger.warning(f"Could not resync reminders: {str(e)}")

    yield

    logger.info("Shutting down application...")
    if _dispatch_task:
        _dispatch_task.cancel()
        try:
            await _dispatch_task
        except asyncio.CancelledError:
            pass
        _dispatch_task = None

    init_services(None)
    await close_db()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="MedMinder API",
    description="Medication schedules, dose tracking and reminders",
    version="1.0.0",
    lifespan=lifespan,
)


#------This Function handles validation errors---------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.method} {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({
            "detail": "Validation error",
            "errors": exc.errors(),
        }),
    )


#------This Function handles missing records---------
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


#------This Function handles storage failures---------
@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error(f"Storage failure for {request.method} {request.url}: {str(exc)}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


#------This Function handles value errors---------
@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"Value error for {request.method} {request.url}: {str(exc)}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


#------This Function handles general exceptions---------
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error for {request.method} {request.url}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error" if settings.environment == "production" else str(exc)},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(profiles.router)
app.include_router(treatments.router)
app.include_router(medications.router)
app.include_router(agenda.router)
app.include_router(reminders.router)


#------This Function returns health status---------
@app.get("/health")
async def health():
    return {"status": "alive", "service": "medminder", "environment": settings.environment}


#------This Function returns detailed health status---------
@app.get("/health/detailed")
async def health_detailed():
    db_health = await check_db_health()

    if not settings.notifications_enabled:
        firebase_health = {"status": "disabled"}
    elif is_initialized():
        firebase_health = {"status": "healthy"}
    else:
        firebase_health = {"status": "uninitialized"}

    reminder_health = {"status": "uninitialized"}
    try:
        services = get_services()
        pending = await services.center.list_pending_trigger_ids()
        reminder_health = {
            "status": "healthy",
            "enabled": settings.reminders_enabled,
            "pending": len(pending),
        }
    except Exception as e:
        reminder_health = {"status": "unhealthy", "error": str(e)}

    health_score = 100
    if db_health.get("status") != "healthy":
        health_score -= 50
    if firebase_health.get("status") == "uninitialized":
        health_score -= 20
    if reminder_health.get("status") != "healthy":
        health_score -= 30

    return {
        "status": "alive",
        "service": "medminder",
        "environment": settings.environment,
        "database": db_health,
        "firebase": firebase_health,
        "reminders": reminder_health,
        "health_score": max(0, health_score),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "medminder.main:app",
        host=settings.server_host,
        port=settings.port,
        reload=settings.environment != "production",
    )
