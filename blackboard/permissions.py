# blackboard/permissions.py
import logging

from aiogram import Bot
from aiogram.enums import ChatMemberStatus
from aiogram.exceptions import TelegramAPIError

from .guild_config import GuildConfigStore

logger = logging.getLogger(__name__)

MANAGER_STATUSES = (ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.CREATOR)


class ModeratorCheck:
    """
    A user moderates a group when listed in the group's mod_user_ids or when
    Telegram reports them as administrator/creator of that group.
    Lookup failures count as "not a moderator".
    """

    def __init__(self, config_store: GuildConfigStore):
        self.config_store = config_store

    async def __call__(self, bot: Bot, guild_id: int, user_id: int) -> bool:
        cfg = self.config_store.load(guild_id)
        if user_id in cfg.mod_user_ids:
            return True

        try:
            member = await bot.get_chat_member(chat_id=guild_id, user_id=user_id)
        except TelegramAPIError as e:
            logger.warning("Moderator lookup failed guild=%s user=%s: %s", guild_id, user_id, e)
            return False
        return member.status in MANAGER_STATUSES
