# main.py
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from blackboard.app import build_app
from blackboard.config import load_settings
from blackboard.handlers import register_all_handlers

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


async def main():
    settings = load_settings()
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    app = build_app(settings)
    app.ids.prime_all()
    logger.info("Starting bot, data_dir=%s default_lang=%s", settings.data_dir, settings.default_lang)

    bot = Bot(
        token=settings.tg_bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

    dp = Dispatcher()
    register_all_handlers(dp, settings, app)

    sweeper = asyncio.create_task(
        app.engine.run_expiry_loop(bot, settings.session_sweep_seconds)
    )
    try:
        await dp.start_polling(bot)
    finally:
        sweeper.cancel()
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
