"""Base service class for business logic."""

from __future__ import annotations

import logging


class BaseService:
    """Base class for all service classes.

    Provides a logger named after the concrete class.

    Example:
        class BrowserService(BaseService):
            def __init__(self, store: ObjectStoreClient):
                super().__init__()
                self.store = store

            async def exists(self, name: str) -> bool:
                self.logger.debug("Checking object", extra={"key": name})
                return await self.store.exists(name)
    """

    def __init__(self) -> None:
        """Initialize base service with its logger."""
        self.logger = logging.getLogger(self.__class__.__name__)
