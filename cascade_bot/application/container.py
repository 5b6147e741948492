from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from urllib.parse import urlparse

from ..domain import CascadeController, CascadeSnapshot, SelectionChanged, TokenSource
from ..infrastructure import CascadeEntities, default_entities, load_entities_from_yaml
from ..infrastructure.auth import (
    CachedCredentialProvider,
    DeviceCodeTokenSource,
    ProxyTokenSource,
    process_token_store,
)
from ..infrastructure.dataverse import RemoteCollectionFetcher
from ..infrastructure.events import SelectionWebhook
from .presenters import CascadePresenter
from .sessions import DEFAULT_MAX_SESSIONS, SessionRegistry

logger = logging.getLogger(__name__)

AUTH_MODES = ("proxy", "interactive")


@dataclass(frozen=True)
class AppConfig:
    bot_token: str
    base_url: str
    auth_mode: str = "proxy"
    parent_entity: str = "parents"
    child_entity: str = "children"
    filter_field: str = "parentRef"
    entities_file: str | None = None
    auth_proxy_url: str | None = None
    auth_tenant_id: str | None = None
    auth_client_id: str | None = None
    auth_authority: str = "https://login.microsoftonline.com"
    auth_scope: str | None = None
    token_expiry_skew_seconds: float = 60.0
    fetch_timeout_seconds: float | None = None
    auth_timeout_seconds: float | None = None
    select_fields: bool = False
    selection_webhook_url: str | None = None
    admin_chat_id: int | None = None
    metrics_log_path: str | None = None
    max_sessions: int = DEFAULT_MAX_SESSIONS

    @property
    def resolved_scope(self) -> str:
        if self.auth_scope:
            return self.auth_scope
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme}://{parsed.netloc}/.default"


class AppContainer:
    def __init__(
        self,
        *,
        config: AppConfig,
        entities: CascadeEntities,
        token_source: TokenSource,
        credentials: CachedCredentialProvider,
        fetcher: RemoteCollectionFetcher,
        presenter: CascadePresenter,
        webhook: SelectionWebhook | None = None,
    ):
        self.config = config
        self.entities = entities
        self.token_source = token_source
        self.credentials = credentials
        self.fetcher = fetcher
        self.presenter = presenter
        self.webhook = webhook
        self.sessions = SessionRegistry(self.create_controller, max_sessions=config.max_sessions)

    def create_controller(self, chat_id: int) -> CascadeController:
        controller = CascadeController(
            credentials=self.credentials,
            fetcher=self.fetcher,
            parent_entity=self.entities.parent,
            child_entity=self.entities.child,
            filter_field=self.entities.filter_field,
        )
        controller.add_listener(partial(_log_state, chat_id))
        controller.add_selection_listener(partial(_log_selection, chat_id))
        if self.webhook is not None:
            controller.add_selection_listener(partial(self.webhook.publish, chat_id))
        return controller

    async def close(self) -> None:
        await self.sessions.flush()
        await self.fetcher.close()
        await self.credentials.close()
        if self.webhook is not None:
            await self.webhook.close()


def _log_state(chat_id: int, snapshot: CascadeSnapshot) -> None:
    logger.log(
        logging.WARNING if snapshot.has_error else logging.DEBUG,
        "Chat %s: phase=%s epoch=%s parents=%s children=%s loading=%s",
        chat_id,
        snapshot.phase.value,
        snapshot.epoch,
        len(snapshot.parents),
        len(snapshot.children),
        snapshot.loading_children,
    )


def _log_selection(chat_id: int, event: SelectionChanged) -> None:
    logger.info(
        "Chat %s selection-changed: parent=%r child=%r",
        chat_id,
        event.selected_parent_name,
        event.selected_child_name,
    )


def create_token_source(config: AppConfig) -> TokenSource:
    if config.auth_mode == "proxy":
        if not config.auth_proxy_url:
            raise RuntimeError("AUTH_PROXY_URL is required when AUTH_MODE=proxy")
        return ProxyTokenSource(config.auth_proxy_url, timeout=config.auth_timeout_seconds)
    if config.auth_mode == "interactive":
        if not config.auth_tenant_id or not config.auth_client_id:
            raise RuntimeError("AUTH_TENANT_ID and AUTH_CLIENT_ID are required when AUTH_MODE=interactive")
        return DeviceCodeTokenSource(
            tenant_id=config.auth_tenant_id,
            client_id=config.auth_client_id,
            scope=config.resolved_scope,
            authority=config.auth_authority,
            timeout=config.auth_timeout_seconds,
        )
    raise RuntimeError(f"Unknown AUTH_MODE '{config.auth_mode}', expected one of: {', '.join(AUTH_MODES)}")


def load_entities(config: AppConfig) -> CascadeEntities:
    if config.entities_file:
        entities = load_entities_from_yaml(config.entities_file)
        logger.info("Entities loaded from %s", config.entities_file)
        return entities
    return default_entities(config.parent_entity, config.child_entity, config.filter_field)


def create_container(config: AppConfig) -> AppContainer:
    entities = load_entities(config)
    token_source = create_token_source(config)
    credentials = CachedCredentialProvider(
        token_source,
        scope=config.resolved_scope,
        store=process_token_store,
        expiry_skew_seconds=config.token_expiry_skew_seconds,
    )
    fetcher = RemoteCollectionFetcher(
        config.base_url,
        request_timeout=config.fetch_timeout_seconds,
        select_fields=config.select_fields,
    )
    webhook = SelectionWebhook(config.selection_webhook_url) if config.selection_webhook_url else None

    return AppContainer(
        config=config,
        entities=entities,
        token_source=token_source,
        credentials=credentials,
        fetcher=fetcher,
        presenter=CascadePresenter(),
        webhook=webhook,
    )
