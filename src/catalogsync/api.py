"""
HTTP routes for sync jobs.

Thin FastAPI layer over JobController. The controller lives on
``app.state.controller``; shop sessions arrive as request headers.

Routes (prefix /api/products/sync):
- POST   ""                start a job
- POST   /test             create one test product
- GET    /current          live view of the current job
- GET    /history          jobs of the calling shop
- GET    /{job_id}/status  one job
- POST   /{job_id}/pause
- POST   /{job_id}/resume
- POST   /{job_id}/cancel
- DELETE /force/all        cancel everything
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import SyncOptions
from .errors import (
    ConcurrencyConflict,
    ConfigurationError,
    InvalidState,
    JobNotFound,
    SyncError,
)
from .feed.models import FeedItem
from .jobs.controller import JobController
from .session import ShopSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products/sync", tags=["Sync"])

TEST_PRODUCT = FeedItem(
    id="test-product-1",
    title="Test Product",
    description="This is a test product for debugging",
    sku="TEST-001",
    price="19.99",
    inventory_quantity=10,
    category="Electronics",
    tags=["test", "debug"],
    vendor="Test Vendor",
    weight=0.5,
)


class SyncRequest(BaseModel):
    """Body of start/resume requests."""

    model_config = ConfigDict(populate_by_name=True)

    batch_size: Optional[int] = Field(default=None, alias="batchSize")


def get_controller(request: Request) -> JobController:
    return request.app.state.controller


def get_session(
    x_shop_domain: Optional[str] = Header(default=None),
    x_shopify_access_token: Optional[str] = Header(default=None),
) -> ShopSession:
    """Build the shop session from request headers, 401 if absent."""
    if not x_shop_domain or not x_shopify_access_token:
        raise HTTPException(status_code=401, detail="Shop session required")
    return ShopSession(shop=x_shop_domain, access_token=x_shopify_access_token)


def _options(body: Optional[SyncRequest], default: Optional[int]) -> Optional[SyncOptions]:
    batch_size = body.batch_size if body is not None else None
    if batch_size is None:
        batch_size = default
    return SyncOptions(batch_size=batch_size) if batch_size is not None else None


@router.post("")
async def start_sync(
    body: Optional[SyncRequest] = None,
    session: ShopSession = Depends(get_session),
    controller: JobController = Depends(get_controller),
):
    options = _options(body, controller.settings.batch_size)
    job_id = await controller.start(session, options)
    return {
        "success": True,
        "message": "Sync job started successfully",
        "jobId": job_id,
    }


@router.post("/test")
async def create_test_product(
    session: ShopSession = Depends(get_session),
    controller: JobController = Depends(get_controller),
):
    """Create one fixed product to check the session and destination writer."""
    logger.info(f"Creating test product for {session.shop}")
    product = await controller.writer.create_item(session, TEST_PRODUCT)
    return {
        "success": True,
        "message": "Test product created successfully",
        "product": asdict(product),
    }


@router.get("/current")
async def current_sync(controller: JobController = Depends(get_controller)):
    job = controller.current_status()
    return {
        "hasActiveJob": job is not None,
        "currentJob": job.to_dict() if job is not None else None,
    }


@router.get("/history")
async def sync_history(
    session: ShopSession = Depends(get_session),
    controller: JobController = Depends(get_controller),
):
    jobs = await controller.history(session.shop)
    return {"jobs": [job.to_dict() for job in jobs]}


@router.delete("/force/all")
async def force_cancel_all(controller: JobController = Depends(get_controller)):
    count = await controller.cancel_all()
    return {
        "success": True,
        "message": f"Force cancelled {count} jobs",
        "cancelledCount": count,
    }


@router.get("/{job_id}/status")
async def sync_status(job_id: str, controller: JobController = Depends(get_controller)):
    job = await controller.status(job_id)
    return {"job": job.to_dict()}


@router.post("/{job_id}/pause")
async def pause_sync(job_id: str, controller: JobController = Depends(get_controller)):
    job = await controller.pause(job_id)
    return {
        "success": True,
        "message": "Sync job paused successfully",
        "job": job.to_dict(),
    }


@router.post("/{job_id}/resume")
async def resume_sync(
    job_id: str,
    body: Optional[SyncRequest] = None,
    session: ShopSession = Depends(get_session),
    controller: JobController = Depends(get_controller),
):
    # Without an explicit batchSize the job keeps its stored one
    job = await controller.resume(job_id, session, _options(body, None))
    return {
        "success": True,
        "message": "Sync job resumed successfully",
        "job": job.to_dict(),
    }


@router.post("/{job_id}/cancel")
async def cancel_sync(job_id: str, controller: JobController = Depends(get_controller)):
    job = await controller.cancel(job_id)
    return {
        "success": True,
        "message": "Sync job cancelled successfully",
        "job": job.to_dict(),
    }


def _status_code(exc: SyncError) -> int:
    if isinstance(exc, JobNotFound):
        return 404
    if isinstance(exc, (ConcurrencyConflict, InvalidState)):
        return 409
    if isinstance(exc, ConfigurationError):
        return 400
    return 500


async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    status_code = _status_code(exc)
    if status_code >= 500:
        logger.error(f"Unhandled sync error on {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {exc}")
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


def register_routes(app: FastAPI) -> None:
    """Mount the sync router and its error mapping on ``app``."""
    app.include_router(router)
    app.add_exception_handler(SyncError, sync_error_handler)
