from aiogram import Dispatcher

from .board import register_board_handlers
from .error_logger import register_error_handlers
from .wizard import register_wizard_handlers
from ..app import App
from ..config import Settings


def register_all_handlers(dp: Dispatcher, settings: Settings, app: App) -> None:
    register_wizard_handlers(dp, settings, app)
    register_board_handlers(dp, settings, app)
    register_error_handlers(dp, settings)
