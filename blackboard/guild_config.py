# blackboard/guild_config.py
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Dict, List

logger = logging.getLogger(__name__)


@dataclass
class GuildConfig:
    lang: str = "en"
    mod_user_ids: List[int] = field(default_factory=list)
    allowed_chat_ids: List[int] = field(default_factory=list)

    def copy(self) -> "GuildConfig":
        return GuildConfig(
            lang=self.lang,
            mod_user_ids=list(self.mod_user_ids),
            allowed_chat_ids=list(self.allowed_chat_ids),
        )

    def add_moderator(self, user_id: int) -> bool:
        if user_id in self.mod_user_ids:
            return False
        self.mod_user_ids.append(user_id)
        return True

    def remove_moderator(self, user_id: int) -> bool:
        if user_id not in self.mod_user_ids:
            return False
        self.mod_user_ids = [u for u in self.mod_user_ids if u != user_id]
        return True

    def add_allowed_chat(self, chat_id: int) -> bool:
        if chat_id in self.allowed_chat_ids:
            return False
        self.allowed_chat_ids.append(chat_id)
        return True

    def remove_allowed_chat(self, chat_id: int) -> bool:
        if chat_id not in self.allowed_chat_ids:
            return False
        self.allowed_chat_ids = [c for c in self.allowed_chat_ids if c != chat_id]
        return True


class GuildConfigStore:
    """
    Per-group settings in config_<id>.json, merged over the defaults.
    Parsed configs are cached until the next save of the same group.
    """

    def __init__(self, data_dir: str, default_lang: str = "en"):
        self.data_dir = data_dir
        self.default_lang = default_lang
        self._cache: Dict[int, GuildConfig] = {}
        os.makedirs(self.data_dir, exist_ok=True)

    def _file_for(self, guild_id: int) -> str:
        return os.path.join(self.data_dir, f"config_{guild_id}.json")

    def _defaults(self) -> Dict:
        return asdict(GuildConfig(lang=self.default_lang))

    def _read(self, guild_id: int) -> GuildConfig:
        path = self._file_for(guild_id)
        merged = self._defaults()
        if not os.path.exists(path):
            return GuildConfig(**merged)

        try:
            with open(path, "r", encoding="utf-8") as f:
                parsed = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error reading config for guild=%s, using defaults: %s", guild_id, e)
            return GuildConfig(**merged)

        if isinstance(parsed, dict):
            for key in merged:
                if key in parsed:
                    merged[key] = parsed[key]
        return GuildConfig(**merged)

    def load(self, guild_id: int) -> GuildConfig:
        cfg = self._cache.get(guild_id)
        if cfg is None:
            cfg = self._read(guild_id)
            self._cache[guild_id] = cfg
        return cfg.copy()

    def save(self, guild_id: int, cfg: GuildConfig) -> None:
        self._cache[guild_id] = cfg.copy()
        try:
            with open(self._file_for(guild_id), "w", encoding="utf-8") as f:
                json.dump(asdict(cfg), f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error("Error saving config for guild=%s: %s", guild_id, e)
