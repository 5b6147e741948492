from __future__ import annotations

import logging

from aiogram import Bot, Dispatcher, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from ..infrastructure.auth import DevicePrompt
from ..infrastructure.metrics import metrics
from .container import AppContainer
from .pages import Page, PageButton
from .workflow import CascadeWorkflow

IGNORED_EDIT_ERRORS = ("message is not modified",)


class TelegramBotApp:
    def __init__(self, container: AppContainer):
        self.container = container
        self.workflow = CascadeWorkflow(
            sessions=container.sessions,
            presenter=container.presenter,
        )
        self._logger = logging.getLogger(__name__)

    def _build_markup(self, buttons: list[list[PageButton]]):
        if not buttons:
            return None
        inline_rows = [
            [InlineKeyboardButton(text=btn.text, callback_data=btn.callback_data) for btn in row]
            for row in buttons
        ]
        return InlineKeyboardMarkup(inline_keyboard=inline_rows)

    async def _send_page(self, chat_id: int, bot, page: Page):
        await bot.send_message(
            chat_id,
            page.text,
            parse_mode=page.parse_mode,
            disable_web_page_preview=page.disable_preview,
            reply_markup=self._build_markup(page.buttons),
        )

    async def _edit_page(self, message: Message, page: Page):
        try:
            await message.edit_text(
                page.text,
                parse_mode=page.parse_mode,
                disable_web_page_preview=page.disable_preview,
                reply_markup=self._build_markup(page.buttons),
            )
        except TelegramBadRequest as exc:
            text = str(exc).lower()
            if any(marker in text for marker in IGNORED_EDIT_ERRORS):
                return
            if "message can't be edited" in text or "message to edit not found" in text:
                await self._send_page(message.chat.id, message.bot, page)
                return
            raise

    async def _safe_answer(self, cq: CallbackQuery):
        try:
            await cq.answer()
        except TelegramBadRequest as exc:
            if "query is too old" in str(exc).lower():
                return
            raise

    def _format_user(self, tg_user) -> str:
        if not tg_user:
            return "unknown (id=?)"
        username = tg_user.username or tg_user.first_name or "unknown"
        return f"{username} (id={tg_user.id})"

    def _log_action(self, tg_user, action: str) -> None:
        self._logger.info("User %s triggered %s", self._format_user(tg_user), action)

    async def _handle_message(self, message: Message, handler):
        action_name = f"message:{message.text or message.content_type}"
        self._log_action(message.from_user, action_name)
        extra = {"chat_id": message.chat.id}
        async with metrics.span_async(action_name, source="telegram", extra=extra):
            page = await handler(message.chat.id)
            if page:
                await self._send_page(message.chat.id, message.bot, page)

    async def _handle_query(self, cq: CallbackQuery, handler):
        await self._safe_answer(cq)
        data = cq.data or ""
        prefix = data.split(":", 1)[0] or "<empty>"
        self._log_action(cq.from_user, f"callback:{data or '<empty>'}")
        message = cq.message
        if message is None:
            return
        chat_id = message.chat.id
        extra = {"chat_id": chat_id}
        async with metrics.span_async(f"callback:{prefix}", source="telegram", extra=extra):
            argument = data.split(":", 1)[1] if ":" in data else ""
            page = await handler(chat_id, argument)
            if not page:
                return
            if isinstance(message, Message):
                await self._edit_page(message, page)
            else:
                await self._send_page(chat_id, cq.bot, page)

    def install_sign_in_prompt(self, bot: Bot) -> None:
        """Deliver interactive sign-in codes to the admin chat, if one is configured."""
        source = self.container.token_source
        admin_chat_id = self.container.config.admin_chat_id
        if admin_chat_id is None or not hasattr(source, "set_prompt"):
            return

        async def prompt(device_prompt: DevicePrompt):
            self._logger.warning("Sign-in required, code sent to admin chat %s", admin_chat_id)
            await bot.send_message(admin_chat_id, f"🔐 {device_prompt.message}")

        source.set_prompt(prompt)

    def build_dispatcher(self) -> Dispatcher:
        dp = Dispatcher()

        @dp.message(F.text == "/start")
        async def start(m: Message):
            await self._handle_message(m, self.workflow.start_page)

        @dp.callback_query(F.data.startswith("parent:"))
        async def parent(cq: CallbackQuery):
            await self._handle_query(cq, self.workflow.choose_parent)

        @dp.callback_query(F.data.startswith("child:"))
        async def child(cq: CallbackQuery):
            await self._handle_query(cq, self.workflow.choose_child)

        @dp.callback_query(F.data.startswith("view:"))
        async def view(cq: CallbackQuery):
            async def handler(chat_id: int, target: str):
                if target == "children":
                    return await self.workflow.children_page(chat_id)
                return await self.workflow.parents_page(chat_id)

            await self._handle_query(cq, handler)

        @dp.callback_query(F.data == "cascade:refresh")
        async def refresh(cq: CallbackQuery):
            await self._handle_query(cq, lambda chat_id, _arg: self.workflow.refresh(chat_id))

        return dp
