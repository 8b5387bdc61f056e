import uuid

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from register_edge.core.config import Settings
from register_edge.db.repositories.key_values import get_value, set_value

from .schemas import LocalApiMode, LocalApiSettings

logger = structlog.get_logger(__name__)

KV_KEY = "localapi.settings"


class LocalApiConfig:
    """Runtime configuration of the multi-register LAN protocol.

    - **standalone**: single register, no networking (default)
    - **server**: this register serves its dataset to the others
    - **client**: this register reads a server register's dataset

    Defaults come from the environment; anything changed at runtime (for
    example by selecting a discovered server) is persisted in ``key_values``
    and wins over the environment on the next start.
    """

    def __init__(self, session_factory: async_sessionmaker, settings: Settings):
        self.session_factory = session_factory
        self._settings = LocalApiSettings(
            mode=LocalApiMode(settings.LOCAL_API_MODE),
            server_address=settings.LOCAL_API_SERVER_ADDRESS,
            port=settings.LOCAL_API_PORT,
            shared_secret=settings.LOCAL_API_SHARED_SECRET,
            register_id=settings.REGISTER_ID,
            register_name=settings.REGISTER_NAME,
        )

    async def load(self) -> LocalApiSettings:
        async with self.session_factory() as db:
            stored = await get_value(db, KV_KEY)
            if stored:
                self._settings = LocalApiSettings.model_validate(
                    {**self._settings.model_dump(), **stored}
                )
            if not self._settings.register_id:
                self._settings = self._settings.model_copy(update={"register_id": str(uuid.uuid4())})
                await set_value(db, KV_KEY, self._settings.model_dump(mode="json"))
                logger.info("register_id_generated", register_id=self._settings.register_id)
            await db.commit()
        return self.current

    async def save(self, **updates) -> LocalApiSettings:
        merged = {**self._settings.model_dump(), **updates}
        self._settings = LocalApiSettings.model_validate(merged)
        async with self.session_factory() as db:
            await set_value(db, KV_KEY, self._settings.model_dump(mode="json"))
            await db.commit()
        logger.info("local_api_config_saved", mode=self._settings.mode.value, keys=sorted(updates))
        return self.current

    @property
    def current(self) -> LocalApiSettings:
        return self._settings.model_copy()

    @property
    def is_server(self) -> bool:
        return self._settings.mode == LocalApiMode.SERVER

    @property
    def is_client(self) -> bool:
        return self._settings.mode == LocalApiMode.CLIENT

    @property
    def is_standalone(self) -> bool:
        return self._settings.mode == LocalApiMode.STANDALONE

    @property
    def base_url(self) -> str:
        if self.is_server:
            return f"http://localhost:{self._settings.port}"
        return f"http://{self._settings.server_address}:{self._settings.port}"
