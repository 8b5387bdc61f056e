from typing import List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from register_edge.localapi.schemas import DiscoveredServer, LocalApiSettings

router = APIRouter(prefix="/api/v1/local-api", tags=["local-api"])


class LocalApiStatus(BaseModel):
    settings: LocalApiSettings
    server_running: bool
    poller_running: bool
    connected: bool
    scanning: bool


class ScanRequest(BaseModel):
    subnet: Optional[str] = None


class ConnectResult(BaseModel):
    ok: bool


@router.get("/status", response_model=LocalApiStatus)
async def local_api_status_endpoint(request: Request):
    container = request.app.state.container
    current = container.local_api_config.current
    return LocalApiStatus(
        settings=current.model_copy(update={"shared_secret": "***" if current.shared_secret else ""}),
        server_running=container.server.is_running,
        poller_running=container.poller.is_running,
        connected=container.local_api_client.connected,
        scanning=container.discovery.is_scanning,
    )


@router.post("/discovery/scan", response_model=List[DiscoveredServer])
async def discovery_scan_endpoint(payload: ScanRequest, request: Request):
    return await request.app.state.container.discovery.scan_subnet(payload.subnet)


@router.post("/discovery/cancel", status_code=204)
async def discovery_cancel_endpoint(request: Request):
    request.app.state.container.discovery.cancel()


@router.post("/connect", response_model=ConnectResult)
async def connect_endpoint(server: DiscoveredServer, request: Request):
    container = request.app.state.container
    ok = await container.discovery.connect_to_server(server)
    if ok:
        await container.server.stop()
        container.poller.start()
    return ConnectResult(ok=ok)
