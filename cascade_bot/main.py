import asyncio
import logging
import os

from dotenv import load_dotenv
from aiogram import Bot

from .application.bot_app import TelegramBotApp
from .application.bootstrap import bootstrap_app
from .application.container import AUTH_MODES, AppConfig
from .application.metrics import configure_metrics_logger
from .application.sessions import DEFAULT_MAX_SESSIONS

load_dotenv()
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", ""}


def load_app_config() -> AppConfig:
    bot_token = os.getenv("BOT_TOKEN", "").strip()
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is empty. Put it to .env")
    base_url = os.getenv("DATAVERSE_BASE_URL", "").strip()
    if not base_url:
        raise RuntimeError("DATAVERSE_BASE_URL is empty. Put it to .env")
    auth_mode = os.getenv("AUTH_MODE", "proxy").strip().lower()
    if auth_mode not in AUTH_MODES:
        raise RuntimeError(f"AUTH_MODE must be one of: {', '.join(AUTH_MODES)}")
    admin_chat_raw = os.getenv("ADMIN_CHAT_ID", "").strip()
    config = AppConfig(
        bot_token=bot_token,
        base_url=base_url,
        auth_mode=auth_mode,
        parent_entity=os.getenv("PARENT_ENTITY", "parents").strip(),
        child_entity=os.getenv("CHILD_ENTITY", "children").strip(),
        filter_field=os.getenv("CHILD_FILTER_FIELD", "parentRef").strip(),
        entities_file=os.getenv("ENTITIES_FILE", "").strip() or None,
        auth_proxy_url=os.getenv("AUTH_PROXY_URL", "").strip() or None,
        auth_tenant_id=os.getenv("AUTH_TENANT_ID", "").strip() or None,
        auth_client_id=os.getenv("AUTH_CLIENT_ID", "").strip() or None,
        auth_authority=os.getenv("AUTH_AUTHORITY", "https://login.microsoftonline.com").strip(),
        auth_scope=os.getenv("AUTH_SCOPE", "").strip() or None,
        token_expiry_skew_seconds=float(os.getenv("TOKEN_EXPIRY_SKEW_SECONDS", "60")),
        fetch_timeout_seconds=_optional_float("DATAVERSE_TIMEOUT_SECONDS"),
        auth_timeout_seconds=_optional_float("AUTH_TIMEOUT_SECONDS"),
        select_fields=_flag("DATAVERSE_SELECT_FIELDS"),
        selection_webhook_url=os.getenv("SELECTION_WEBHOOK_URL", "").strip() or None,
        admin_chat_id=int(admin_chat_raw) if admin_chat_raw else None,
        metrics_log_path=os.getenv("METRICS_LOG_PATH", "").strip() or None,
        max_sessions=int(os.getenv("MAX_CHAT_SESSIONS", str(DEFAULT_MAX_SESSIONS))),
    )
    logger.info(
        "Config loaded: base_url=%s, auth_mode=%s, entities=%s, fetch_timeout=%s, webhook=%s",
        config.base_url,
        config.auth_mode,
        config.entities_file or f"{config.parent_entity}/{config.child_entity}",
        config.fetch_timeout_seconds if config.fetch_timeout_seconds is not None else "none",
        "on" if config.selection_webhook_url else "off",
    )
    return config


async def main():
    config = load_app_config()
    if config.metrics_log_path:
        configure_metrics_logger(config.metrics_log_path)
        logger.info("Metrics are written to %s", config.metrics_log_path)
    logger.info("Bootstrapping application")
    async with bootstrap_app(config) as container:
        logger.info("Building Telegram bot application")
        bot_app = TelegramBotApp(container)
        bot = Bot(config.bot_token)
        bot_app.install_sign_in_prompt(bot)
        dp = bot_app.build_dispatcher()
        logger.info("Starting polling loop")
        try:
            await dp.start_polling(bot)
        except Exception:
            logger.exception("Polling stopped due to unexpected error")
            raise
        finally:
            await bot.session.close()
            logger.info("Polling loop finished")


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user, shutting down")


if __name__ == "__main__":
    run()
