"""
HTTP trigger API for Audience Sync.

Lets an external scheduler (or a person) start a sweep or a single list sync.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, HTTPException, Depends, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware

from ..core.config import load_settings
from ..core.exceptions import AudienceSyncError, MailchimpAPIError, SyncError, WatermarkStoreError
from ..core.models import AudienceList
from ..models.sync import ListSyncResult
from ..services.bootstrap import SyncServices, build_services
from ..version import __version__

logger = logging.getLogger(__name__)

# Global services (initialized in lifespan)
sync_services: Optional[SyncServices] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global sync_services

    try:
        settings = load_settings(os.getenv("AUDIENCE_SYNC_CONFIG_FILE"))
        sync_services = build_services(settings)
        logger.info("Application startup complete")
    except AudienceSyncError as e:
        # no watermark store or credentials means no safe sync, refuse to start
        logger.error(f"Failed to initialize application services: {e}")
        raise

    yield

    sync_services = None
    logger.info("Application shutdown")


app = FastAPI(
    title="Audience Sync API",
    description="Incremental Mailchimp to Ometria audience synchronization",
    version=__version__,
    lifespan=lifespan
)

allowed_origins_str = os.getenv("ALLOWED_ORIGINS", "")
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]

if not allowed_origins:
    # Default to allowing all for local dev if not set
    allowed_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_services() -> SyncServices:
    if sync_services is None:
        raise HTTPException(status_code=500, detail="Sync services not initialized")
    return sync_services


@app.get("/health")
def health_check():
    """Check the health of the application and the watermark store."""
    store_ok = sync_services is not None and sync_services.store.ping()
    return {
        "status": "healthy" if store_ok else "degraded",
        "version": __version__,
        "services": {
            "initialized": sync_services is not None,
            "watermark_store": store_ok,
        }
    }


@app.get("/api/v1/lists", response_model=List[AudienceList])
def list_audiences(services: SyncServices = Depends(get_services)):
    """List the audiences available to the API key."""
    try:
        return services.source.get_all_lists()
    except MailchimpAPIError as e:
        logger.error(f"Failed to list audiences: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/api/v1/lists/{list_id}/watermark")
def get_watermark(list_id: str, services: SyncServices = Depends(get_services)) -> Dict[str, Any]:
    """Get the last completed sync of a list."""
    try:
        value = services.store.get(list_id)
    except WatermarkStoreError as e:
        logger.error(f"Failed to read watermark of list {list_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {"list_id": list_id, "watermark": value or None}


@app.post("/api/v1/lists/{list_id}/sync", response_model=ListSyncResult)
def sync_list(list_id: str, services: SyncServices = Depends(get_services)):
    """Run one sync cycle for a list and wait for it."""
    try:
        return services.engine.sync_list(list_id)
    except SyncError as e:
        logger.error(f"Sync of list {list_id} failed: {e}")
        raise HTTPException(status_code=502, detail={"stage": e.stage, "message": str(e)})


@app.post("/api/v1/sync", status_code=202)
def trigger_sweep(background_tasks: BackgroundTasks, services: SyncServices = Depends(get_services)):
    """Start a sweep over every list in the background."""
    background_tasks.add_task(services.runner.run_sweep)
    return {"message": "Sync sweep started"}
