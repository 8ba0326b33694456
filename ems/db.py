"""
Database Lifecycle
Owns the MongoDB client and Beanie initialisation for the process
"""
from typing import Any, Callable, Optional

import structlog
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from ems.config import Settings
from ems.models.attendance import Attendance
from ems.models.company import CompanySettings
from ems.models.log import ActivityLog
from ems.models.notification import Notification
from ems.models.user import User

logger = structlog.get_logger(__name__)

DOCUMENT_MODELS = [User, Attendance, CompanySettings, Notification, ActivityLog]


class Database:
    """
    Explicit connection lifecycle.

    Built once at process start from settings. ``connect`` raises when the
    server is unreachable; restarting is left to the process supervisor.
    """

    def __init__(
        self,
        url: str,
        name: str,
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
        **client_options: Any,
    ):
        self.url = url
        self.name = name
        self._client_factory = client_factory
        self._client_options = client_options
        self.client: Optional[Any] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.MONGODB_URL,
            settings.MONGODB_DB_NAME,
            maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
            serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        )

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def connect(self) -> None:
        if self.client is not None:
            return
        client = self._client_factory(self.url, **self._client_options)
        try:
            await init_beanie(database=client[self.name], document_models=DOCUMENT_MODELS)
        except Exception:
            client.close()
            logger.exception("database_connect_failed", database=self.name)
            raise
        self.client = client
        logger.info("database_connected", database=self.name)

    async def disconnect(self) -> None:
        if self.client is None:
            return
        self.client.close()
        self.client = None
        logger.info("database_disconnected", database=self.name)

    async def ping(self) -> bool:
        """Health check; never raises"""
        if self.client is None:
            return False
        try:
            await self.client[self.name].command("ping")
        except Exception as e:
            logger.warning("database_ping_failed", error=str(e))
            return False
        return True
