"""
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from app.api import arrivals, reports, unassigned, vehicles
from app.db.database import engine, Base, settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        # Create database tables
        Base.metadata.create_all(bind=engine)
    yield
    for session in list(app.state.model_pick.values()):
        session.stop()
    app.state.model_pick.clear()


app = FastAPI(
    title="Site Arrivals Reconciliation",
    description="Delivery arrival confirmation and reconciliation API",
    version="1.0.0",
    lifespan=lifespan,
)

# Arrival ids with viewer coloring active, per project
app.state.active_coloring = {}
# Model viewer client; None when no viewer session is attached
app.state.viewer = None
# Running model-pick sessions and list selections, per (project, arrival)
app.state.model_pick = {}
app.state.selections = {}

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Locally stored arrival photos
if settings.photo_base_url.startswith("/"):
    app.mount(
        settings.photo_base_url,
        StaticFiles(directory=settings.photo_storage_dir, check_dir=False),
        name="arrival-photos",
    )

# Include routers
app.include_router(vehicles.router, prefix="/api/projects/{project_id}/vehicles", tags=["vehicles"])
app.include_router(arrivals.router, prefix="/api/projects/{project_id}", tags=["arrivals"])
app.include_router(unassigned.router, prefix="/api/projects/{project_id}/unassigned", tags=["unassigned"])
app.include_router(reports.router, prefix="/api/projects/{project_id}/reports", tags=["reports"])


@app.get("/")
async def root():
    return {"message": "Site Arrivals Reconciliation API"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
