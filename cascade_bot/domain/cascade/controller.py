from __future__ import annotations

import asyncio
import inspect
import logging
from functools import partial
from typing import Awaitable, Callable, Union

from ..errors import AuthError, FetchError
from ..shared.models import (
    EntitySpec,
    FetchResult,
    FilterExpression,
    Record,
    Selection,
    SelectionChanged,
    TokenResult,
)
from ..shared.repositories import CollectionFetcher, CredentialsProvider
from .state import CascadePhase, CascadeSnapshot, ChildLoadStatus

logger = logging.getLogger(__name__)

StateListener = Callable[[CascadeSnapshot], None]
SelectionListener = Callable[[SelectionChanged], Union[None, Awaitable[None]]]


class CascadeController:
    """
    Двухуровневый каскадный выбор (страна -> город) поверх удалённого источника.

    Контроллер владеет обоими списками и текущим выбором. Каждый запрос городов
    помечается эпохой, актуальной в момент смены страны; ответ с устаревшей
    эпохой отбрасывается, поэтому побеждает последний выбор страны независимо
    от порядка ответов. Асинхронные подписчики на смену выбора запускаются
    фоновыми задачами и не задерживают загрузку городов.
    """

    def __init__(
        self,
        *,
        credentials: CredentialsProvider,
        fetcher: CollectionFetcher,
        parent_entity: EntitySpec,
        child_entity: EntitySpec,
        filter_field: str,
    ):
        self._credentials = credentials
        self._fetcher = fetcher
        self._parent_entity = parent_entity
        self._child_entity = child_entity
        self._filter_field = filter_field

        self._phase = CascadePhase.UNAUTHENTICATED
        self._selection = Selection()
        self._parents: tuple[Record, ...] = ()
        self._children: tuple[Record, ...] = ()
        self._loading_children = False
        self._epoch = 0
        self._init_generation = 0
        self._auth_error: AuthError | None = None
        self._parent_error: FetchError | None = None
        self._child_error: FetchError | AuthError | None = None

        self._listeners: list[StateListener] = []
        self._selection_listeners: list[SelectionListener] = []
        self._pending_notifications: set[asyncio.Future] = set()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def phase(self) -> CascadePhase:
        return self._phase

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def snapshot(self) -> CascadeSnapshot:
        return CascadeSnapshot(
            phase=self._phase,
            selection=self._selection,
            parents=self._parents,
            children=self._children,
            loading_children=self._loading_children,
            epoch=self._epoch,
            auth_error=self._auth_error,
            parent_error=self._parent_error,
            child_error=self._child_error,
        )

    @property
    def has_pending_notifications(self) -> bool:
        return bool(self._pending_notifications)

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def add_selection_listener(self, listener: SelectionListener) -> None:
        self._selection_listeners.append(listener)

    def find_parent(self, parent_id: str) -> Record | None:
        return next((record for record in self._parents if record.id == parent_id), None)

    def find_child(self, child_id: str) -> Record | None:
        return next((record for record in self._children if record.id == child_id), None)

    async def initialize(self) -> CascadeSnapshot:
        self._init_generation += 1
        generation = self._init_generation
        # any child request still in flight belongs to the previous parent set
        self._epoch += 1
        self._phase = CascadePhase.AUTHENTICATING
        self._selection = Selection()
        self._parents = ()
        self._children = ()
        self._loading_children = False
        self._auth_error = None
        self._parent_error = None
        self._child_error = None
        self._notify()

        token = await self._token()
        if generation != self._init_generation:
            return self.snapshot
        if not token.ok:
            logger.warning("Credential unavailable, cascade stays unauthenticated: %s", token.error)
            self._phase = CascadePhase.UNAUTHENTICATED
            self._auth_error = token.error
            self._notify()
            return self.snapshot

        result = await self._fetch(self._parent_entity, token.credential.token)
        if generation != self._init_generation:
            return self.snapshot
        if result.ok:
            self._parents = result.records
            logger.info("Loaded %s parent records from %s", len(result.records), self._parent_entity.entity_set)
        else:
            logger.warning("Failed to load parents from %s: %s", self._parent_entity.entity_set, result.error)
            self._parents = ()
            self._parent_error = result.error
        self._phase = CascadePhase.PARENT_SELECTED if self._selection.has_parent else CascadePhase.READY
        self._notify()
        return self.snapshot

    async def on_parent_change(self, parent_id: str, parent_name: str) -> ChildLoadStatus:
        parent_id = parent_id or ""
        parent_name = (parent_name or "") if parent_id else ""

        self._epoch += 1
        epoch = self._epoch
        self._selection = self._selection.with_parent(parent_id, parent_name)
        self._children = ()
        self._child_error = None
        self._loading_children = bool(parent_id)
        if self._phase in (CascadePhase.READY, CascadePhase.PARENT_SELECTED):
            self._phase = CascadePhase.PARENT_SELECTED if parent_id else CascadePhase.READY
        self._notify()
        self._emit_selection()

        if not parent_id:
            return ChildLoadStatus.CLEARED

        token = await self._token()
        if epoch != self._epoch:
            return ChildLoadStatus.SUPERSEDED
        if not token.ok:
            logger.warning("Cannot load children of %s without a credential: %s", parent_id, token.error)
            self._fail_children(token.error)
            return ChildLoadStatus.FAILED

        result = await self._fetch(
            self._child_entity,
            token.credential.token,
            filter_expr=FilterExpression(self._filter_field, parent_id),
        )
        if epoch != self._epoch:
            logger.debug("Dropping children of %s: epoch %s superseded by %s", parent_id, epoch, self._epoch)
            return ChildLoadStatus.SUPERSEDED
        if not result.ok:
            logger.warning("Failed to load children of %s: %s", parent_id, result.error)
            self._fail_children(result.error)
            return ChildLoadStatus.FAILED

        self._children = tuple(
            record for record in result.records if not record.parent_id or record.parent_id == parent_id
        )
        self._loading_children = False
        self._child_error = None
        self._notify()
        return ChildLoadStatus.LOADED

    async def on_child_change(self, child_id: str, child_name: str) -> bool:
        child_id = child_id or ""
        if not self._selection.has_parent:
            logger.debug("Ignoring child %r: no parent selected", child_id)
            return False
        if child_id and self.find_child(child_id) is None:
            logger.debug("Ignoring child %r: not among children of %s", child_id, self._selection.parent_id)
            return False
        self._selection = self._selection.with_child(child_id, (child_name or "") if child_id else "")
        self._notify()
        self._emit_selection()
        return True

    def _fail_children(self, error: FetchError | AuthError | None) -> None:
        self._children = ()
        self._loading_children = False
        self._child_error = error
        self._notify()

    async def _token(self) -> TokenResult:
        try:
            return await self._credentials.get_token()
        except Exception as exc:
            logger.exception("Credential provider failed unexpectedly")
            return TokenResult(error=AuthError(str(exc) or exc.__class__.__name__))

    async def _fetch(
        self,
        entity: EntitySpec,
        token: str,
        *,
        filter_expr: FilterExpression | None = None,
    ) -> FetchResult:
        try:
            result = await self._fetcher.fetch(entity, token, filter_expr=filter_expr)
        except Exception as exc:
            logger.exception("Fetcher failed unexpectedly for %s", entity.entity_set)
            return FetchResult(error=FetchError(0, str(exc) or exc.__class__.__name__))
        if result.error is not None and result.error.unauthorized:
            self._credentials.invalidate()
        return result

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener %r failed", listener)

    async def flush_notifications(self) -> None:
        """Wait for selection listeners that are still running in the background."""
        while self._pending_notifications:
            await asyncio.gather(*list(self._pending_notifications), return_exceptions=True)

    def _emit_selection(self) -> None:
        event = SelectionChanged(
            selected_parent_name=self._selection.parent_name,
            selected_child_name=self._selection.child_name,
        )
        for listener in list(self._selection_listeners):
            try:
                outcome = listener(event)
            except Exception:
                logger.exception("Selection listener %r failed", listener)
                continue
            if inspect.isawaitable(outcome):
                future = asyncio.ensure_future(outcome)
                self._pending_notifications.add(future)
                future.add_done_callback(partial(self._notification_done, listener))

    def _notification_done(self, listener: SelectionListener, future: asyncio.Future) -> None:
        self._pending_notifications.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Selection listener %r failed", listener, exc_info=exc)
