import asyncio
import ipaddress
import socket
from typing import Callable, List, Optional

import httpx
import structlog

from register_edge.core.clock import now_ms

from .client import LocalApiClient
from .config import LocalApiConfig
from .schemas import DiscoveredServer, HealthOut, LocalApiMode

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]

FALLBACK_SUBNET = "192.168.1.0/24"


def parse_subnet(value: str) -> ipaddress.IPv4Network:
    """Accepts ``192.168.1.0/24``, ``192.168.1`` or a single address (its /24)."""
    value = value.strip()
    if "/" in value:
        return ipaddress.IPv4Network(value, strict=False)
    if value.count(".") == 2:
        return ipaddress.IPv4Network(f"{value}.0/24")
    return ipaddress.IPv4Network(f"{value}/24", strict=False)


def _is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value.strip())
    except ValueError:
        return False
    return True


def local_ip_address() -> Optional[str]:
    # no packet is sent; connect() on UDP only selects the outbound interface
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return None
    finally:
        sock.close()


class LocalApiDiscovery:
    """Finds server registers by probing ``/api/health`` across a subnet."""

    def __init__(
        self,
        config: LocalApiConfig,
        client: LocalApiClient,
        http: httpx.AsyncClient,
        batch_size: int = 20,
        probe_timeout: float = 2.0,
        default_subnet: Optional[str] = None,
    ):
        self.config = config
        self.client = client
        self.http = http
        self.batch_size = batch_size
        self.probe_timeout = probe_timeout
        self.default_subnet = default_subnet
        self._scanning = False
        self._cancelled = False

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    def cancel(self) -> None:
        if self._scanning:
            self._cancelled = True

    def resolve_subnet(self, subnet: Optional[str] = None) -> ipaddress.IPv4Network:
        """Explicit subnet, then the configured default, then the /24 of the
        server address when it is an IPv4 literal, then this host's /24."""
        candidate = subnet or self.default_subnet
        if not candidate:
            server_address = self.config.current.server_address
            if server_address and _is_ipv4(server_address):
                candidate = server_address
        if not candidate:
            candidate = local_ip_address() or FALLBACK_SUBNET
        return parse_subnet(candidate)

    async def scan_subnet(
        self,
        subnet: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[DiscoveredServer]:
        if self._scanning:
            logger.info("discovery_scan_already_running")
            return []

        self._scanning = True
        self._cancelled = False
        discovered: List[DiscoveredServer] = []
        try:
            try:
                network = self.resolve_subnet(subnet)
            except ValueError as exc:
                logger.warning("discovery_invalid_subnet", subnet=subnet or self.default_subnet, error=str(exc))
                return []
            hosts = [str(host) for host in network.hosts()]
            port = self.config.current.port
            total = len(hosts)
            checked = 0
            logger.info("discovery_scan_started", subnet=str(network), port=port, hosts=total)

            for start in range(0, total, self.batch_size):
                if self._cancelled:
                    logger.info("discovery_scan_cancelled", checked=checked, total=total)
                    break

                batch = hosts[start:start + self.batch_size]
                results = await asyncio.gather(
                    *(self._probe_with_timeout(address, port) for address in batch)
                )
                for server in results:
                    if server is not None:
                        discovered.append(server)
                        logger.info(
                            "discovery_server_found",
                            address=server.address,
                            port=server.port,
                            register_name=server.register_name,
                        )
                checked += len(batch)
                if on_progress is not None:
                    on_progress(checked, total)
        finally:
            self._scanning = False
            self._cancelled = False

        logger.info("discovery_scan_completed", found=len(discovered))
        return discovered

    async def probe_address(self, address: str, port: int) -> Optional[DiscoveredServer]:
        headers = {"Content-Type": "application/json"}
        secret = self.config.current.shared_secret
        if secret:
            headers["x-shared-secret"] = secret

        try:
            response = await self.http.get(
                f"http://{address}:{port}/api/health",
                headers=headers,
                timeout=self.probe_timeout,
            )
            if not response.is_success:
                return None
            health = HealthOut.model_validate(response.json())
        except (httpx.HTTPError, ValueError):
            # most addresses on a subnet never answer
            return None

        if not health.ok:
            return None
        return DiscoveredServer(
            address=address,
            port=port,
            register_name=health.register_name or "Unknown",
            responded_at=now_ms(),
        )

    async def connect_to_server(self, server: DiscoveredServer) -> bool:
        await self.config.save(
            mode=LocalApiMode.CLIENT,
            server_address=server.address,
            port=server.port,
        )
        result = await self.client.test_connection()
        if result["ok"]:
            logger.info("local_api_connected", address=server.address, port=server.port)
        else:
            logger.warning(
                "local_api_connect_failed",
                address=server.address,
                port=server.port,
                error=result.get("error"),
            )
        return result["ok"]

    async def _probe_with_timeout(self, address: str, port: int) -> Optional[DiscoveredServer]:
        try:
            return await asyncio.wait_for(self.probe_address(address, port), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            return None
