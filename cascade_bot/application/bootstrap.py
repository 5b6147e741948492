from __future__ import annotations

from contextlib import asynccontextmanager

from .container import AppConfig, AppContainer, create_container


@asynccontextmanager
async def bootstrap_app(config: AppConfig):
    container: AppContainer = create_container(config)
    try:
        yield container
    finally:
        await container.close()
