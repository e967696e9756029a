# blackboard/guild_setup.py
import logging
from typing import Optional

from .guild_config import GuildConfigStore
from .i18n import SUPPORTED_LANGS, Translator

logger = logging.getLogger(__name__)

LIST_COMMANDS = ("addmod", "delmod", "addchat", "delchat")


def _parse_id(value: Optional[str]) -> Optional[int]:
    try:
        return int((value or "").strip())
    except ValueError:
        return None


class GuildSetup:
    """
    Group settings behind /setup. Callers check moderator rights first.

      /setup [show]            current settings
      /setup lang en|de        group language
      /setup addmod <user id>  also works as a reply to the user's message
      /setup delmod <user id>
      /setup addchat [chat id] defaults to the current chat
      /setup delchat [chat id]
    """

    def __init__(self, config_store: GuildConfigStore, t: Translator):
        self.config_store = config_store
        self.t = t

    def run(self, guild_id: int, args: Optional[str], reply_user_id: Optional[int] = None) -> str:
        parts = (args or "").split()
        command = parts[0].lower() if parts else "show"
        value = parts[1] if len(parts) > 1 else None

        if command == "show":
            return self.describe(guild_id)
        if command == "lang":
            return self.set_lang(guild_id, value)
        if command not in LIST_COMMANDS:
            return self.t(guild_id, "setup.usage")

        if command in ("addmod", "delmod"):
            target = _parse_id(value) if value else reply_user_id
            if target is not None and target <= 0:
                target = None
        else:
            target = _parse_id(value) if value else guild_id
        if target is None:
            return self.t(guild_id, "setup.badId")

        cfg = self.config_store.load(guild_id)
        update = {
            "addmod": cfg.add_moderator,
            "delmod": cfg.remove_moderator,
            "addchat": cfg.add_allowed_chat,
            "delchat": cfg.remove_allowed_chat,
        }[command]
        if not update(target):
            return self.t(guild_id, "setup.unchanged")

        self.config_store.save(guild_id, cfg)
        logger.info("Config of guild=%s changed: %s %s", guild_id, command, target)
        return self.t(guild_id, f"setup.done.{command}", id=target)

    def set_lang(self, guild_id: int, lang: Optional[str]) -> str:
        lang = (lang or "").strip().lower()
        if lang not in SUPPORTED_LANGS:
            return self.t(guild_id, "lang.usage", langs=", ".join(SUPPORTED_LANGS))
        self.t.set_lang(guild_id, lang)
        logger.info("Language of guild=%s set to %s", guild_id, lang)
        return self.t(guild_id, "lang.set", lang=lang)

    def describe(self, guild_id: int) -> str:
        t = self.t
        cfg = self.config_store.load(guild_id)
        none = t(guild_id, "setup.none")
        mods = ", ".join(str(u) for u in cfg.mod_user_ids) or none
        chats = ", ".join(str(c) for c in cfg.allowed_chat_ids) or none
        return "\n".join(
            [
                t(guild_id, "setup.header"),
                f"• {t(guild_id, 'setup.lang')}: {t.get_lang(guild_id)}",
                f"• {t(guild_id, 'setup.mods')}: {mods}",
                f"• {t(guild_id, 'setup.chats')}: {chats}",
            ]
        )
