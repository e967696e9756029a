# blackboard/handlers/error_logger.py
import html
import logging

from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ErrorEvent

from ..config import Settings

logger = logging.getLogger(__name__)

MAX_REPORT = 3500


def build_error_report(event: ErrorEvent) -> str:
    update = event.update
    where = "unknown"
    who = "unknown"

    if update.message is not None:
        where = update.message.chat.title or str(update.message.chat.id)
        if update.message.from_user:
            who = f"{update.message.from_user.full_name} (id: {update.message.from_user.id})"
    elif update.callback_query is not None:
        cq = update.callback_query
        who = f"{cq.from_user.full_name} (id: {cq.from_user.id})"
        if cq.message is not None:
            where = cq.message.chat.title or str(cq.message.chat.id)

    error = f"{type(event.exception).__name__}: {event.exception}"
    return (
        f"⚠️ <b>Unhandled error</b>\n"
        f"👥 Chat: {html.escape(where)}\n"
        f"👤 User: {html.escape(who)}\n\n"
        f"<code>{html.escape(error[:MAX_REPORT])}</code>"
    )


def register_error_handlers(dp: Dispatcher, settings: Settings) -> None:
    @dp.errors()
    async def on_error(event: ErrorEvent, bot: Bot):
        logger.error(
            "Unhandled error in update %s: %s",
            event.update.update_id,
            event.exception,
            exc_info=event.exception,
        )

        if not settings.error_chat_id:
            return True
        try:
            await bot.send_message(settings.error_chat_id, build_error_report(event))
        except TelegramAPIError as e:
            logger.error("Failed to send error report to error_chat_id=%s: %s", settings.error_chat_id, e)
        return True
