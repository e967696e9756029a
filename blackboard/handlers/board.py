# blackboard/handlers/board.py
import html
import logging

from aiogram import Dispatcher, F
from aiogram.enums import ChatType
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message

from ..app import App
from ..config import Settings
from ..orders import BoardError, parse_edit_args
from ..wizard.callbacks import OrderCB

logger = logging.getLogger(__name__)

GROUP_CHATS = {ChatType.GROUP, ChatType.SUPERGROUP}


def register_board_handlers(dp: Dispatcher, settings: Settings, app: App) -> None:
    t = app.t

    @dp.callback_query(OrderCB.filter())
    async def handle_order_button(callback: CallbackQuery, callback_data: OrderCB):
        if callback.message is None:
            await callback.answer()
            return

        guild_id = callback.message.chat.id
        user = callback.from_user
        text = await app.board.handle(
            callback.bot,
            guild_id,
            callback_data.action,
            callback_data.order_id,
            user.id,
            user.full_name,
        )
        try:
            await callback.answer(text)
        except TelegramBadRequest as e:
            logger.info("Callback answer failed: %s", e)

    @dp.message(Command("orders"), F.chat.type.in_(GROUP_CHATS))
    async def cmd_orders(message: Message, command: CommandObject):
        include_closed = (command.args or "").strip().lower() == "all"
        await message.answer(app.board.list_text(message.chat.id, include_closed=include_closed))

    @dp.message(Command("edit"), F.chat.type.in_(GROUP_CHATS))
    async def cmd_edit(message: Message, command: CommandObject):
        chat_id = message.chat.id
        if message.from_user is None:
            return
        try:
            order_id, changes = parse_edit_args(command.args)
        except BoardError as e:
            await message.reply(html.escape(t(chat_id, e.key, **e.variables)))
            return

        text = await app.board.edit(message.bot, chat_id, order_id, message.from_user.id, changes)
        await message.reply(html.escape(text))

    async def _is_moderator(message: Message) -> bool:
        chat_id = message.chat.id
        if message.from_user is None:
            return False
        if await app.moderator_check(message.bot, chat_id, message.from_user.id):
            return True
        await message.reply(html.escape(t(chat_id, "board.noPermission")))
        return False

    @dp.message(Command("lang"), F.chat.type.in_(GROUP_CHATS))
    async def cmd_lang(message: Message, command: CommandObject):
        if not await _is_moderator(message):
            return
        await message.reply(html.escape(app.setup.set_lang(message.chat.id, command.args)))

    @dp.message(Command("setup"), F.chat.type.in_(GROUP_CHATS))
    async def cmd_setup(message: Message, command: CommandObject):
        if not await _is_moderator(message):
            return
        reply_user_id = None
        replied = message.reply_to_message
        if replied is not None and replied.from_user is not None and not replied.from_user.is_bot:
            reply_user_id = replied.from_user.id
        await message.reply(html.escape(app.setup.run(message.chat.id, command.args, reply_user_id)))
