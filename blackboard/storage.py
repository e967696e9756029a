# blackboard/storage.py
import json
import logging
import os
import re
from typing import Dict, List

from pydantic import ValidationError

from .models import Order

logger = logging.getLogger(__name__)

ORDERS_FILE_RE = re.compile(r"^orders-(-?\d+)\.json$")


class OrderStorage:
    """
    Per-community JSON persistence.

    Every call reads or writes the whole list for one community. There is no
    finer-grained locking: two writers for the same community race and the
    last full write wins.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        os.makedirs(self.data_dir, exist_ok=True)

    def _file_for(self, guild_id: int) -> str:
        return os.path.join(self.data_dir, f"orders-{guild_id}.json")

    def known_guilds(self) -> List[int]:
        guilds: List[int] = []
        for name in os.listdir(self.data_dir):
            m = ORDERS_FILE_RE.match(name)
            if m:
                guilds.append(int(m.group(1)))
        return guilds

    def load_orders(self, guild_id: int) -> List[Order]:
        path = self._file_for(guild_id)
        if not os.path.exists(path):
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read().strip()
            raw = json.loads(content) if content else []
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read orders for guild=%s from %s: %s", guild_id, path, e)
            return []

        if not isinstance(raw, list):
            raw = [raw]

        orders: List[Order] = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            entry.setdefault("claimants", [])
            if not isinstance(entry["claimants"], list):
                entry["claimants"] = []
            entry["closed"] = bool(entry.get("closed", False))
            try:
                orders.append(Order.model_validate(entry))
            except ValidationError as e:
                logger.error("Skipping malformed order in %s: %s", path, e)
        return orders

    def save_orders(self, guild_id: int, orders: List[Order]) -> None:
        path = self._file_for(guild_id)
        tmp = f"{path}.tmp"
        data = [o.model_dump(mode="json") for o in orders]
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)


class OrderIdAllocator:
    """
    Sequential order ids per community. Primed from the highest persisted id,
    then incremented in memory only, so ids of removed orders are never
    handed out again while the process lives.
    """

    def __init__(self, storage: OrderStorage):
        self.storage = storage
        self._counters: Dict[int, int] = {}

    def prime(self, guild_id: int) -> int:
        orders = self.storage.load_orders(guild_id)
        current = max((o.id for o in orders), default=0)
        self._counters[guild_id] = max(current, self._counters.get(guild_id, 0))
        return self._counters[guild_id]

    def prime_all(self) -> None:
        for guild_id in self.storage.known_guilds():
            value = self.prime(guild_id)
            logger.info("Order counter primed: guild=%s max_id=%s", guild_id, value)

    def next_id(self, guild_id: int) -> int:
        if guild_id not in self._counters:
            self.prime(guild_id)
        self._counters[guild_id] += 1
        return self._counters[guild_id]
