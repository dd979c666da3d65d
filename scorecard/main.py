from contextlib import asynccontextmanager

from fastapi import FastAPI

from scorecard import models  # noqa: F401  registers tables on Base.metadata
from scorecard.core.config import get_settings
from scorecard.core.logging import setup_logging
from scorecard.db.base_class import Base
from scorecard.db.session import engine
from scorecard.routers import admin, households, members, submissions

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan,
)

# --- Register Routers ---
app.include_router(submissions.router)  # /api/v1/submissions/*
app.include_router(members.router)      # /api/v1/members/*
app.include_router(households.router)   # /api/v1/households/*
app.include_router(admin.router)        # /api/v1/admin/*


# --- Root health check ---
@app.get("/")
async def root():
    return {"message": f"{settings.app_name} API is running"}
