from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from directory_app.auth_router import router as auth_router
from directory_app.config import settings
from directory_app.database import close_database, init_database
from directory_app.dependencies import close_logo_resolver
from directory_app.exception_handlers import register_exception_handlers
from directory_app.listings.router import router as listings_router
from directory_app.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Path(settings.storage_dir).mkdir(parents=True, exist_ok=True)
    await init_database()
    yield
    await close_logo_resolver()
    await close_database()


app = FastAPI(
    title="Business Directory",
    description="Bulk import of business listings into the directory",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(listings_router, prefix="/api/v1/listings", tags=["listings"])

app.mount(
    "/storage", StaticFiles(directory=settings.storage_dir, check_dir=False), name="storage"
)


@app.get("/api/v1/health")
async def health():
    from directory_app.database import check_health

    await check_health()
    return {"status": "healthy"}
