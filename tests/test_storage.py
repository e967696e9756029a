# tests/test_storage.py
import json

from blackboard.guild_config import GuildConfig, GuildConfigStore
from blackboard.models import Draft, Order, OrderKind, QuantityMode
from blackboard.storage import OrderIdAllocator, OrderStorage


def make_order(order_id: int, **kw) -> Order:
    d = Draft(owner_id=42, owner_name="Ann", title="Copper", item_id=2770)
    for k, v in kw.items():
        setattr(d, k, v)
    return Order.from_draft(d, order_id, OrderKind.BUY, "BUY: Copper")


def test_missing_file_is_empty(storage):
    assert storage.load_orders(-1) == []


def test_save_and_load_keeps_fields(storage):
    storage.save_orders(-1, [make_order(1, quantity_mode=QuantityMode.UNLIMITED)])
    loaded = storage.load_orders(-1)
    assert len(loaded) == 1
    assert loaded[0].quantity is None
    assert loaded[0].quantity_mode == QuantityMode.UNLIMITED
    assert loaded[0].closed is False


def test_legacy_records_are_normalized_and_unknown_keys_kept(tmp_path):
    path = tmp_path / "orders--5.json"
    path.write_text(
        json.dumps(
            [
                {"id": 3, "item_id": 2770, "owner_id": 1, "claimants": None, "note": "legacy"},
                {"id": "broken"},
                "garbage",
            ]
        ),
        encoding="utf-8",
    )
    storage = OrderStorage(str(tmp_path))

    orders = storage.load_orders(-5)
    assert [o.id for o in orders] == [3]
    assert orders[0].claimants == []
    assert orders[0].closed is False

    storage.save_orders(-5, orders)
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved[0]["note"] == "legacy"


def test_known_guilds(storage):
    storage.save_orders(-10, [])
    storage.save_orders(20, [])
    assert sorted(storage.known_guilds()) == [-10, 20]


def test_id_allocator_primes_from_max_and_never_reuses(storage):
    storage.save_orders(-1, [make_order(4), make_order(9)])
    ids = OrderIdAllocator(storage)
    ids.prime_all()

    assert ids.next_id(-1) == 10
    storage.save_orders(-1, [make_order(4)])
    assert ids.next_id(-1) == 11
    assert ids.next_id(-2) == 1


def test_guild_config_defaults_and_merge(tmp_path):
    store = GuildConfigStore(str(tmp_path), "de")
    assert store.load(1) == GuildConfig(lang="de")

    (tmp_path / "config_2.json").write_text(json.dumps({"mod_user_ids": [7], "extra": 1}), encoding="utf-8")
    cfg = store.load(2)
    assert cfg.lang == "de"
    assert cfg.mod_user_ids == [7]

    cfg.allowed_chat_ids = [2]
    store.save(2, cfg)
    assert store.load(2).allowed_chat_ids == [2]


def test_guild_config_is_read_once_until_saved(tmp_path):
    store = GuildConfigStore(str(tmp_path), "en")
    path = tmp_path / "config_3.json"
    path.write_text(json.dumps({"lang": "de"}), encoding="utf-8")
    assert store.load(3).lang == "de"

    path.write_text(json.dumps({"lang": "en"}), encoding="utf-8")
    cfg = store.load(3)
    assert cfg.lang == "de"

    cfg.mod_user_ids.append(9)
    assert store.load(3).mod_user_ids == []

    cfg.lang = "en"
    store.save(3, cfg)
    assert store.load(3) == GuildConfig(lang="en", mod_user_ids=[9])
    assert json.loads(path.read_text(encoding="utf-8"))["mod_user_ids"] == [9]
