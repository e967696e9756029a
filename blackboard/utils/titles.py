# blackboard/utils/titles.py
import re

from ..i18n import Translator
from ..models import OrderKind

DEFAULT_PREFIXES = {
    OrderKind.BUY: "BUY: ",
    OrderKind.SELL: "SELL: ",
}

KNOWN_PREFIX_WORDS = ["buy", "sell", "ankauf", "verkauf", "wtb", "wts"]


def _strip_prefix(title: str, words: list[str]) -> str:
    alternatives = "|".join(re.escape(w) for w in words if w)
    pattern = re.compile(rf"^\s*(?:(?:{alternatives})\s*:\s*)+", re.IGNORECASE)
    return pattern.sub("", title).strip()


def apply_title_prefix(t: Translator, kind: OrderKind, raw_title: str, guild_id: int) -> str:
    """
    Removes any recognized prefix ('buy:', 'Verkauf:' ...) and prepends the
    canonical one for the order kind in the guild language.
    """
    buy_prefix = t(guild_id, "title.prefix.buy")
    sell_prefix = t(guild_id, "title.prefix.sell")
    if buy_prefix == "title.prefix.buy":
        buy_prefix = DEFAULT_PREFIXES[OrderKind.BUY]
    if sell_prefix == "title.prefix.sell":
        sell_prefix = DEFAULT_PREFIXES[OrderKind.SELL]

    words = list(KNOWN_PREFIX_WORDS)
    for p in (buy_prefix, sell_prefix):
        word = p.strip().rstrip(":").strip()
        if word and word.lower() not in words:
            words.append(word.lower())

    cleaned = _strip_prefix(str(raw_title or ""), words)
    prefix = sell_prefix if OrderKind(kind) == OrderKind.SELL else buy_prefix
    return f"{prefix}{cleaned}"
