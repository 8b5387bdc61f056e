from fastapi import APIRouter, Request

from register_edge.domain.sync.schemas import (
    OutboxPassResult,
    OutboxStatus,
    SyncOrderResult,
    SyncSummary,
)

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


@router.post("/orders", response_model=SyncSummary)
async def sync_all_endpoint(request: Request):
    return await request.app.state.container.order_sync.sync_all_pending_orders()


@router.post("/orders/{order_id}", response_model=SyncOrderResult)
async def sync_order_endpoint(order_id: str, request: Request):
    return await request.app.state.container.order_sync.sync_order_to_platform(order_id)


@router.post("/orders/{order_id}/retry", response_model=SyncOrderResult)
async def retry_order_endpoint(order_id: str, request: Request):
    return await request.app.state.container.order_sync.retry_failed_order(order_id)


@router.get("/outbox", response_model=OutboxStatus)
async def outbox_status_endpoint(request: Request):
    return await request.app.state.container.outbox.status()


@router.post("/outbox/flush", response_model=OutboxPassResult)
async def outbox_flush_endpoint(request: Request):
    return await request.app.state.container.outbox.on_connectivity_restored()
