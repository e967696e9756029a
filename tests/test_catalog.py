# tests/test_catalog.py
import json

from blackboard.api_client import ItemCatalogClient, ItemInfo, parse_item_payload
from blackboard.config import Settings
from blackboard.utils.item_card import build_tooltip_lines, format_price, render_item_card
from blackboard.utils.stacks import LocalStackSizes


def offline_settings(tmp_path) -> Settings:
    return Settings(
        tg_bot_token="x",
        data_dir=str(tmp_path),
        default_lang="en",
        catalog_region="eu",
        catalog_locale="en_US",
        catalog_client_id=None,
        catalog_client_secret=None,
        catalog_namespace_static="static-classic-eu",
        catalog_namespace_dynamic="dynamic-classic-eu",
        catalog_namespace_media="static-classic-eu",
        catalog_timeout_seconds=5,
        stack_file=None,
        session_idle_seconds=1800,
        session_sweep_seconds=60,
        error_chat_id=None,
        debug=False,
    )


ITEM = {
    "id": 19019,
    "name": "Thunderfury, Blessed Blade of the Windseeker",
    "level": 80,
    "max_stack_size": 1,
    "sell_price": 255025,
    "quality": {"type": "LEGENDARY", "name": "Legendary"},
    "item_subclass": {"name": "Sword"},
    "inventory_type": {"name": "One-Hand"},
    "preview_item": {
        "binding": {"name": "Binds when picked up"},
        "weapon": {"damage": {"display_string": "44 - 115 Damage"}},
        "stats": [{"display": {"display_string": "+5 Agility"}}],
        "spells": [{"description": "Chance on hit: Blasts your enemy with lightning."}],
        "requirements": {"level": {"value": 60}},
    },
}
MEDIA = {"assets": [{"key": "icon", "value": "https://example.invalid/icon.jpg"}]}


def test_parse_item_payload():
    info = parse_item_payload(19019, ITEM, MEDIA)
    assert info.found
    assert info.name.startswith("Thunderfury")
    assert info.quality == 5
    assert info.icon_url == "https://example.invalid/icon.jpg"
    assert info.required_level == 60
    assert info.stats == ["+5 Agility"]
    assert info.max_stack is None
    assert info.vendor_sell == 255025


def test_missing_payload_is_not_found():
    info = parse_item_payload(5, None, None)
    assert not info.found
    assert info.name == "Item #5"


async def test_catalog_without_credentials_fails_soft(tmp_path):
    client = ItemCatalogClient(offline_settings(tmp_path))
    info = await client.get_item_info(2770)
    assert info == ItemInfo.placeholder(2770)
    assert await client.search_items_by_name("copper") == []
    assert await client.fetch_icon(None) is None


async def test_local_stack_sizes_fill_missing_max_stack(tmp_path):
    path = tmp_path / "items.json"
    path.write_text(json.dumps({"2770": 20, "1": 1}), encoding="utf-8")
    stacks = LocalStackSizes(str(path))
    assert stacks.get(2770) == 20
    assert stacks.get(1) is None

    client = ItemCatalogClient(offline_settings(tmp_path), stacks)
    info = await client.get_item_info(2770)
    assert info.max_stack == 20


def test_format_price():
    assert format_price(255025) == "25g 50s 25c"
    assert format_price(100) == "1s"
    assert format_price(0) is None


def test_item_card_renders_png(t):
    info = parse_item_payload(19019, ITEM, MEDIA)
    lines = build_tooltip_lines(info, t, 1)
    texts = [line.text for line in lines]
    assert "Item Level 80" in texts
    assert "Requires Level 60" in texts

    png = render_item_card(info.name, lines, "Sell Price: 25g 50s 25c", None, info.quality)
    assert png.startswith(b"\x89PNG")


def test_unknown_item_has_no_tooltip(t):
    assert build_tooltip_lines(ItemInfo.placeholder(3), t, 1) == []
