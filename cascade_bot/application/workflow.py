from __future__ import annotations

from dataclasses import dataclass

from ..domain import CascadeController, ChildLoadStatus
from .pages import Page
from .presenters import CascadePresenter
from .sessions import SessionRegistry


@dataclass
class CascadeWorkflow:
    sessions: SessionRegistry
    presenter: CascadePresenter

    async def start_page(self, chat_id: int) -> Page:
        controller = await self.sessions.restart(chat_id)
        return self.presenter.parents_page(controller.snapshot)

    async def refresh(self, chat_id: int) -> Page:
        return await self.start_page(chat_id)

    async def parents_page(self, chat_id: int) -> Page:
        controller = await self.sessions.ensure_ready(chat_id)
        return self.presenter.parents_page(controller.snapshot)

    async def children_page(self, chat_id: int) -> Page:
        controller = await self.sessions.ensure_ready(chat_id)
        return self.presenter.children_page(controller.snapshot)

    async def choose_parent(self, chat_id: int, parent_id: str) -> Page | None:
        controller = await self.sessions.ensure_ready(chat_id)
        parent_name = ""
        if parent_id:
            record = controller.find_parent(parent_id)
            if record is None:
                return self.presenter.stale_parent(controller.snapshot)
            parent_name = record.display_name

        status = await controller.on_parent_change(parent_id, parent_name)
        if status is ChildLoadStatus.SUPERSEDED:
            # a newer choice in the same chat renders its own page
            return None
        if status is ChildLoadStatus.CLEARED:
            return self.presenter.parents_page(controller.snapshot)
        return self.presenter.children_page(controller.snapshot)

    async def choose_child(self, chat_id: int, child_id: str) -> Page:
        controller = await self.sessions.ensure_ready(chat_id)
        child_name = self._child_name(controller, child_id)
        accepted = await controller.on_child_change(child_id, child_name)
        if not accepted:
            return self.presenter.stale_child(controller.snapshot)
        return self.presenter.children_page(controller.snapshot)

    def _child_name(self, controller: CascadeController, child_id: str) -> str:
        if not child_id:
            return ""
        record = controller.find_child(child_id)
        return record.display_name if record else ""
