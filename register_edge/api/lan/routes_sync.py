from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from register_edge.core.clock import now_ms
from register_edge.db.base import get_db
from register_edge.localapi.schemas import HealthOut

from .deps import require_shared_secret

router = APIRouter(prefix="/api", tags=["sync"])


@router.get("/health")
async def health_endpoint(request: Request):
    current = request.app.state.container.local_api_config.current
    health = HealthOut(
        ok=True,
        register_id=current.register_id,
        register_name=current.register_name,
        timestamp=now_ms(),
    )
    return health.model_dump(mode="json", by_alias=True)


@router.get("/sync/events", dependencies=[Depends(require_shared_secret)])
async def list_sync_events_endpoint(
    request: Request,
    since: int = 0,
    db: AsyncSession = Depends(get_db),
):
    events = await request.app.state.container.events.get_events_since(db, since)
    return {"events": [e.model_dump(mode="json", by_alias=True) for e in events]}
