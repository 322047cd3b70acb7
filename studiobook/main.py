import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api.errors import register_error_handlers
from .api.routes import (
    auth,
    bookings,
    classes,
    class_types,
    credits,
    instructors,
    misc,
    packages,
    payments,
    reports,
    settings as settings_routes,
    users,
    waitlist,
)
from .db.session import Base, engine, SessionLocal
from .config import get_settings
from .services.admin import ensure_admin_exists
from .workers.scheduler import get_scheduler

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Studio Booking API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(classes.router, prefix="/api/v1")
app.include_router(class_types.router, prefix="/api/v1")
app.include_router(instructors.router, prefix="/api/v1")
app.include_router(packages.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(waitlist.router, prefix="/api/v1")
app.include_router(credits.router, prefix="/api/v1")
app.include_router(payments.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")
app.include_router(settings_routes.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(misc.router, prefix="/api/v1")

scheduler = None


@app.on_event("startup")
async def startup_event() -> None:
    global scheduler
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        ensure_admin_exists(session, settings.default_admin_email, settings.default_admin_password)
    if settings.scheduler_enabled:
        scheduler = get_scheduler()
        scheduler.start()
        logger.info("Background scheduler started")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
