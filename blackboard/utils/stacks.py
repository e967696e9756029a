# blackboard/utils/stacks.py
import json
import logging
import os
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class LocalStackSizes:
    """
    Fallback max-stack sizes from a local items.json ({"<item_id>": <stack>}).
    Lookup order for the file: explicit path, ./data/items.json, ./items.json.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = self._resolve(path)
        self._stacks: Dict[str, int] = {}
        self._mtime: float = 0.0
        if self.path:
            self._load()
        else:
            logger.info("No local items.json found, stack fallback disabled.")

    @staticmethod
    def _resolve(path: Optional[str]) -> Optional[str]:
        for candidate in (path, os.path.join("data", "items.json"), "items.json"):
            if candidate and os.path.exists(candidate):
                return candidate
        return None

    def _load(self) -> None:
        if not self.path:
            return
        try:
            mtime = os.path.getmtime(self.path)
            if mtime == self._mtime:
                return
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._stacks = {str(k): v for k, v in data.items()} if isinstance(data, dict) else {}
            self._mtime = mtime
            logger.info("Local stack sizes loaded (%s entries) from %s", len(self._stacks), self.path)
        except (OSError, json.JSONDecodeError, AttributeError) as e:
            logger.warning("Loading local stack sizes failed: %s", e)

    def get(self, item_id: int) -> Optional[int]:
        # reload when the file was edited
        self._load()
        value = self._stacks.get(str(item_id))
        try:
            n = int(value)
        except (TypeError, ValueError):
            return None
        return n if n > 1 else None
