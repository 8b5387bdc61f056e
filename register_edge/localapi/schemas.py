import enum
from typing import Any, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class LocalApiMode(str, enum.Enum):
    STANDALONE = "standalone"
    SERVER = "server"
    CLIENT = "client"


class SyncEventType(str, enum.Enum):
    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    ORDER_PAID = "order_paid"
    INVENTORY_UPDATED = "inventory_updated"
    PRODUCT_UPDATED = "product_updated"
    SHIFT_OPENED = "shift_opened"
    SHIFT_CLOSED = "shift_closed"
    USER_UPDATED = "user_updated"
    RETURN_CREATED = "return_created"
    CONFIG_UPDATED = "config_updated"


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class LocalApiSettings(CamelModel):
    mode: LocalApiMode = LocalApiMode.STANDALONE
    server_address: str = ""
    port: int = 8787
    shared_secret: str = ""
    register_id: str = ""
    register_name: str = "Register 1"


class SyncEvent(CamelModel):
    id: str
    type: SyncEventType
    register_id: str
    register_name: Optional[str] = None
    payload: Any = None
    timestamp: int


class HealthOut(CamelModel):
    ok: bool
    register_id: str
    register_name: str
    timestamp: int


class DiscoveredServer(CamelModel):
    address: str
    port: int
    register_name: str
    responded_at: int
