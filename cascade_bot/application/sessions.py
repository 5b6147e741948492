from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Callable

from ..domain import CascadeController

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[int], CascadeController]

DEFAULT_MAX_SESSIONS = 1000


class SessionRegistry:
    """
    One cascade controller per chat, created on first use and initialized once.

    At most ``max_sessions`` controllers are kept; the least recently used chat
    is evicted and starts from scratch on its next tap.
    """

    def __init__(self, factory: ControllerFactory, *, max_sessions: int = DEFAULT_MAX_SESSIONS):
        if max_sessions < 1:
            raise ValueError("max_sessions must be positive")
        self._factory = factory
        self._max_sessions = max_sessions
        self._controllers: OrderedDict[int, CascadeController] = OrderedDict()
        self._initialized: set[int] = set()
        self._init_tasks: dict[int, asyncio.Task] = {}
        self._evicted: list[CascadeController] = []

    def __len__(self) -> int:
        return len(self._controllers)

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._controllers

    def get(self, chat_id: int) -> CascadeController:
        controller = self._controllers.get(chat_id)
        if controller is not None:
            self._controllers.move_to_end(chat_id)
            return controller
        controller = self._factory(chat_id)
        self._controllers[chat_id] = controller
        logger.debug("Created cascade session for chat %s", chat_id)
        self._evicted = [item for item in self._evicted if item.has_pending_notifications]
        while len(self._controllers) > self._max_sessions:
            evicted_id, evicted = self._controllers.popitem(last=False)
            self._initialized.discard(evicted_id)
            self._init_tasks.pop(evicted_id, None)
            if evicted.has_pending_notifications:
                self._evicted.append(evicted)
            logger.info("Evicted idle cascade session for chat %s", evicted_id)
        return controller

    async def ensure_ready(self, chat_id: int) -> CascadeController:
        controller = self.get(chat_id)
        if chat_id not in self._initialized:
            await self._initialize(chat_id, controller)
        return controller

    async def restart(self, chat_id: int) -> CascadeController:
        controller = self.get(chat_id)
        await self._initialize(chat_id, controller, force=True)
        return controller

    async def flush(self) -> None:
        """Let background selection listeners of every session finish."""
        controllers = list(self._controllers.values()) + self._evicted
        self._evicted = []
        for controller in controllers:
            await controller.flush_notifications()

    async def _initialize(self, chat_id: int, controller: CascadeController, *, force: bool = False) -> None:
        task = self._init_tasks.get(chat_id)
        if task is None or force:
            task = asyncio.ensure_future(controller.initialize())
            self._init_tasks[chat_id] = task
            task.add_done_callback(lambda done: self._forget_task(chat_id, done))
        await asyncio.shield(task)
        # the chat may have been evicted while its controller was loading
        if self._controllers.get(chat_id) is controller:
            self._initialized.add(chat_id)

    def _forget_task(self, chat_id: int, task: asyncio.Task) -> None:
        if self._init_tasks.get(chat_id) is task:
            del self._init_tasks[chat_id]
