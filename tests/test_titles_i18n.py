# tests/test_titles_i18n.py
import pytest

from blackboard.i18n import format_vars
from blackboard.models import OrderKind
from blackboard.utils.numbers import is_numeric, parse_number
from blackboard.utils.titles import apply_title_prefix


def test_translate_falls_back_to_default_then_key(t):
    assert t(1, "wizard.nav.next") == "Next"
    t.set_lang(1, "de")
    assert t(1, "wizard.nav.next") == "Weiter"
    assert t(1, "does.not.exist") == "does.not.exist"


def test_language_is_read_once_per_guild(t, monkeypatch):
    reads = []
    read = t.config_store._read

    def counting_read(guild_id):
        reads.append(guild_id)
        return read(guild_id)

    monkeypatch.setattr(t.config_store, "_read", counting_read)
    for _ in range(5):
        t(9, "wizard.nav.next")
    assert reads == [9]

    t.set_lang(9, "de")
    assert t(9, "wizard.nav.next") == "Weiter"
    assert reads == [9]


def test_unknown_language_is_not_stored(t):
    assert t.set_lang(1, "fr") == "en"


def test_format_vars_keeps_missing_placeholders():
    assert format_vars("{a} and {b}", {"a": 1}) == "1 and {b}"


@pytest.mark.parametrize(
    "raw, kind, expected",
    [
        ("Copper Ore", OrderKind.BUY, "BUY: Copper Ore"),
        ("sell: Copper Ore", OrderKind.BUY, "BUY: Copper Ore"),
        ("BUY: buy:  Copper Ore", OrderKind.SELL, "SELL: Copper Ore"),
        ("Verkauf: Copper Ore", OrderKind.SELL, "SELL: Copper Ore"),
    ],
)
def test_title_prefix_is_normalized(t, raw, kind, expected):
    assert apply_title_prefix(t, kind, raw, 1) == expected


def test_title_prefix_in_guild_language(t):
    t.set_lang(5, "de")
    assert apply_title_prefix(t, OrderKind.BUY, "Sell: Erz", 5) == "Ankauf: Erz"


@pytest.mark.parametrize(
    "text, expected",
    [("20", 20), ("x 12.9 y", 12), ("3,5", 3), ("-4", -4), ("none", None), ("", None)],
)
def test_parse_number(text, expected):
    assert parse_number(text) == expected


def test_is_numeric():
    assert is_numeric(" 2770 ")
    assert not is_numeric("27a")
    assert not is_numeric("-1")
