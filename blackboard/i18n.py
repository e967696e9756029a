# blackboard/i18n.py
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

from .guild_config import GuildConfigStore

logger = logging.getLogger(__name__)

LOCALE_DIR = Path(__file__).parent / "locales"
SUPPORTED_LANGS = ("en", "de")

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def _load_dictionaries() -> Dict[str, Dict[str, Any]]:
    dictionaries: Dict[str, Dict[str, Any]] = {}
    for lang in SUPPORTED_LANGS:
        path = LOCALE_DIR / f"{lang}.json"
        try:
            dictionaries[lang] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load locale %s: %s", path, e)
            dictionaries[lang] = {}
    return dictionaries


def _get_by_path(obj: Dict[str, Any], key: str) -> Optional[str]:
    node: Any = obj
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def format_vars(text: str, variables: Dict[str, Any]) -> str:
    def _sub(m: re.Match) -> str:
        name = m.group(1)
        return str(variables[name]) if variables.get(name) is not None else m.group(0)

    return _PLACEHOLDER_RE.sub(_sub, text)


class Translator:
    """
    translate(guild_id, key, **vars): guild language first, then the default
    language, then the raw key.
    """

    def __init__(self, config_store: GuildConfigStore, default_lang: str = "en"):
        self.config_store = config_store
        self.default_lang = default_lang if default_lang in SUPPORTED_LANGS else "en"
        self.dictionaries = _load_dictionaries()

    def get_lang(self, guild_id: int) -> str:
        lang = self.config_store.load(guild_id).lang
        return lang if lang in SUPPORTED_LANGS else self.default_lang

    def set_lang(self, guild_id: int, lang: str) -> str:
        cfg = self.config_store.load(guild_id)
        cfg.lang = lang if lang in SUPPORTED_LANGS else self.default_lang
        self.config_store.save(guild_id, cfg)
        return cfg.lang

    def translate(self, guild_id: int, key: str, **variables: Any) -> str:
        lang = self.get_lang(guild_id)
        value = _get_by_path(self.dictionaries.get(lang, {}), key)
        if value is None:
            value = _get_by_path(self.dictionaries.get(self.default_lang, {}), key)
        if value is None:
            value = key
        return format_vars(value, variables)

    __call__ = translate
