import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api.routes import auth, members, classes, bookings, waitlist, ratings, notifications
from .db.session import Base, engine, SessionLocal
from .config import get_settings
from .core.auth import ensure_admin_exists
from .workers.scheduler import get_scheduler


settings = get_settings()
logging.basicConfig(level=settings.log_level.upper())

app = FastAPI(title="GymNex Enrollment API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(members.router, prefix="/api/v1")
app.include_router(classes.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(waitlist.router, prefix="/api/v1")
app.include_router(ratings.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")

scheduler = get_scheduler()


@app.on_event("startup")
async def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        ensure_admin_exists(session, settings.default_admin_login, settings.default_admin_password)
    scheduler.start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    scheduler.shutdown(wait=False)
