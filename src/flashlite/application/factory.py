"""
Backend Factory
Centralizes the logic for selecting the store backend and wiring the context.
"""

import logging

from flashlite.application.config import AppConfig
from flashlite.application.context import FlashcardsContext
from flashlite.infrastructure.adapters.http_store import HttpStore
from flashlite.infrastructure.adapters.local_store import LocalStore

logger = logging.getLogger(__name__)


def get_backend(config: AppConfig) -> LocalStore | HttpStore:
    """
    Returns the store for ``config.backend``.

    Both adapters implement Store and AuthProvider, so the same object fills
    both ports.
    """
    if config.backend == "http":
        logger.debug(f"Backend: HTTP ({config.store_url})")
        return HttpStore(
            url=config.store_url,
            timeout=config.request_timeout,
            poll_interval=config.poll_interval,
        )

    logger.debug(f"Backend: local ({config.data_file})")
    return LocalStore(data_file=config.data_file, local_user=config.local_user)


def build_context(config: AppConfig) -> tuple[FlashcardsContext, LocalStore | HttpStore]:
    backend = get_backend(config)
    return FlashcardsContext(store=backend, auth=backend), backend
