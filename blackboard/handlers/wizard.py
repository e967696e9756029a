# blackboard/handlers/wizard.py
import html
import logging

from aiogram import Dispatcher, F
from aiogram.enums import ChatType
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from ..app import App
from ..config import Settings
from ..wizard.callbacks import WizardCB

logger = logging.getLogger(__name__)

GROUP_CHATS = {ChatType.GROUP, ChatType.SUPERGROUP}


def register_wizard_handlers(dp: Dispatcher, settings: Settings, app: App) -> None:
    t = app.t

    @dp.message(Command("order"), F.chat.type.in_(GROUP_CHATS))
    async def cmd_order(message: Message):
        chat = message.chat
        user = message.from_user
        if user is None:
            return

        cfg = app.config_store.load(chat.id)
        if cfg.allowed_chat_ids and chat.id not in cfg.allowed_chat_ids:
            await message.reply(html.escape(t(chat.id, "wizard.notAllowedHere")))
            return

        try:
            await app.engine.start(
                message.bot,
                guild_id=chat.id,
                user_id=user.id,
                origin_chat_id=chat.id,
                private_chat_id=user.id,
                owner_name=user.full_name,
            )
        except (TelegramForbiddenError, TelegramBadRequest) as e:
            logger.info("Cannot DM user=%s from chat=%s: %s", user.id, chat.id, e)
            me = await message.bot.me()
            await message.reply(
                html.escape(t(chat.id, "wizard.dmBlocked", bot=f"@{me.username}"))
            )
            return

        await message.reply(html.escape(t(chat.id, "wizard.checkDm")))

    @dp.message(CommandStart(), F.chat.type == ChatType.PRIVATE)
    async def cmd_start(message: Message):
        await message.answer(html.escape(t(0, "help.private")))

    @dp.message(Command("order"), F.chat.type == ChatType.PRIVATE)
    async def cmd_order_private(message: Message):
        await message.answer(html.escape(t(0, "wizard.groupOnly")))

    @dp.message(Command("cancel"), F.chat.type == ChatType.PRIVATE)
    async def cmd_cancel(message: Message):
        if message.from_user is None:
            return
        if not await app.engine.cancel_private(message.bot, message.chat.id, message.from_user.id):
            await message.answer(html.escape(t(0, "wizard.noWizard")))

    @dp.message(F.chat.type == ChatType.PRIVATE, F.text, ~F.text.startswith("/"))
    async def handle_private_text(message: Message):
        if message.from_user is None:
            return
        handled = await app.engine.handle_text(
            message.bot,
            message.chat.id,
            message.from_user.id,
            message.text,
        )
        if not handled:
            await message.answer(html.escape(t(0, "wizard.noWizard")))

    @dp.callback_query(WizardCB.filter())
    async def handle_wizard_callback(callback: CallbackQuery, callback_data: WizardCB):
        if callback.from_user.id != callback_data.user_id:
            await callback.answer(t(callback_data.guild_id, "wizard.notYours"), show_alert=True)
            return

        notice = await app.engine.handle_callback(callback.bot, callback_data)
        try:
            await callback.answer(notice or None)
        except TelegramBadRequest as e:
            # query too old once a slow step (catalog, publishing) is done
            logger.info("Callback answer failed: %s", e)
