# blackboard/api_client.py
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import BaseModel

from .config import Settings
from .utils.stacks import LocalStackSizes

logger = logging.getLogger(__name__)

QUALITY_ID = {
    "POOR": 0,
    "COMMON": 1,
    "UNCOMMON": 2,
    "RARE": 3,
    "EPIC": 4,
    "LEGENDARY": 5,
    "ARTIFACT": 6,
    "HEIRLOOM": 7,
}

SEARCH_PAGE_SIZE = 25


class ItemInfo(BaseModel):
    id: int
    name: str
    found: bool = True
    icon_url: Optional[str] = None
    quality: Optional[int] = None
    quality_name: Optional[str] = None
    item_level: Optional[int] = None
    required_level: Optional[int] = None
    item_class: Optional[str] = None
    item_subclass: Optional[str] = None
    inventory_type: Optional[str] = None
    stats: List[str] = []
    damage_text: Optional[str] = None
    speed_text: Optional[str] = None
    armor_text: Optional[str] = None
    equip_text: Optional[str] = None
    use_text: Optional[str] = None
    binding: Optional[str] = None
    durability_text: Optional[str] = None
    socket_bonus: Optional[str] = None
    max_stack: Optional[int] = None
    vendor_buy: Optional[int] = None
    vendor_sell: Optional[int] = None

    @classmethod
    def placeholder(cls, item_id: int) -> "ItemInfo":
        return cls(id=item_id, name=f"Item #{item_id}", found=False)


class ItemHit(BaseModel):
    id: int
    name: str


def _dig(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def parse_item_payload(
        item_id: int,
        item: Optional[Dict[str, Any]],
        media: Optional[Dict[str, Any]],
        preview_fallback: Optional[Dict[str, Any]] = None,
) -> ItemInfo:
    """Maps item + media documents of the catalog API onto ItemInfo."""
    item = item or {}
    preview = item.get("preview_item") or (preview_fallback or {}).get("preview_item") or {}

    icon_url = None
    for asset in (media or {}).get("assets") or []:
        if isinstance(asset, dict) and asset.get("key") == "icon":
            icon_url = asset.get("value")
            break

    quality_type = _dig(item, "quality", "type") or _dig(preview, "quality", "type")

    stats: List[str] = []
    for s in preview.get("stats") or []:
        text = _dig(s, "display", "display_string") or (s or {}).get("display_string")
        if text:
            stats.append(text)

    spells = [sp.get("description") for sp in preview.get("spells") or [] if isinstance(sp, dict)]
    spells = [d for d in spells if d]
    equip_text = next((d for d in spells if d.lower().startswith(("equip:", "anlegen:"))), None)
    use_text = next((d for d in spells if d.lower().startswith(("use:", "benutzen:"))), None)

    max_stack = item.get("max_stack_size")
    try:
        max_stack = int(max_stack)
    except (TypeError, ValueError):
        max_stack = None
    if max_stack is not None and max_stack <= 1:
        max_stack = None

    return ItemInfo(
        id=item_id,
        name=item.get("name") or preview.get("name") or f"Item #{item_id}",
        found=bool(item),
        icon_url=icon_url,
        quality=QUALITY_ID.get(quality_type) if quality_type else None,
        quality_name=_dig(item, "quality", "name") or _dig(preview, "quality", "name"),
        item_level=item.get("level"),
        required_level=_dig(preview, "requirements", "level", "value") or item.get("required_level"),
        item_class=_dig(item, "item_class", "name") or _dig(preview, "item_class", "name"),
        item_subclass=_dig(item, "item_subclass", "name") or _dig(preview, "item_subclass", "name"),
        inventory_type=_dig(item, "inventory_type", "name") or _dig(preview, "inventory_type", "name"),
        stats=stats,
        damage_text=_dig(preview, "weapon", "damage", "display_string"),
        speed_text=_dig(preview, "weapon", "attack_speed", "display_string"),
        armor_text=_dig(preview, "armor", "display", "display_string") or _dig(preview, "armor", "display_string"),
        equip_text=equip_text,
        use_text=use_text,
        binding=_dig(preview, "binding", "name"),
        durability_text=_dig(preview, "durability", "display_string"),
        socket_bonus=_dig(preview, "socket_bonus", "display_string"),
        max_stack=max_stack,
        vendor_buy=item.get("purchase_price"),
        vendor_sell=item.get("sell_price"),
    )


class ItemCatalogClient:
    """
    Game item catalog over HTTP. Every public method fails soft: network or
    HTTP errors are logged and turned into placeholders / empty results.
    """

    TOKEN_URL = "https://oauth.battle.net/token"

    def __init__(self, settings: Settings, stacks: Optional[LocalStackSizes] = None):
        self.settings = settings
        self.base_url = f"https://{settings.catalog_region}.api.blizzard.com"
        self.stacks = stacks
        self.timeout = aiohttp.ClientTimeout(total=settings.catalog_timeout_seconds)
        self._token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._token_lock = asyncio.Lock()

    async def _get_token(self, session: aiohttp.ClientSession) -> Optional[str]:
        if not self.settings.catalog_enabled:
            return None

        async with self._token_lock:
            now = time.time()
            if self._token and now < self._token_expiry - 30:
                return self._token

            data = {"grant_type": "client_credentials"}
            auth = aiohttp.BasicAuth(
                self.settings.catalog_client_id,
                self.settings.catalog_client_secret,
            )
            async with session.post(self.TOKEN_URL, data=data, auth=auth) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    logger.error("Catalog token request failed (%s): %s", resp.status, text)
                    return None
                payload = await resp.json()

            self._token = payload.get("access_token")
            self._token_expiry = now + float(payload.get("expires_in", 0))
            return self._token

    async def _get_json(
            self,
            session: aiohttp.ClientSession,
            path: str,
            token: str,
            params: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        async with session.get(url, params=params, headers=headers) as resp:
            if resp.status >= 400:
                logger.warning("GET %s failed (%s)", url, resp.status)
                return None
            try:
                return await resp.json()
            except (aiohttp.ContentTypeError, ValueError):
                logger.warning("Non-JSON response from %s", url)
                return None

    async def get_item_info(self, item_id: int) -> ItemInfo:
        s = self.settings
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                token = await self._get_token(session)
                if not token:
                    return self._with_local_stack(ItemInfo.placeholder(item_id))

                item, media = await asyncio.gather(
                    self._get_json(
                        session,
                        f"/data/wow/item/{item_id}",
                        token,
                        {"namespace": s.catalog_namespace_static, "locale": s.catalog_locale},
                    ),
                    self._get_json(
                        session,
                        f"/data/wow/media/item/{item_id}",
                        token,
                        {"namespace": s.catalog_namespace_media, "locale": s.catalog_locale},
                    ),
                )

                dynamic = None
                if not (item or {}).get("preview_item"):
                    dynamic = await self._get_json(
                        session,
                        f"/data/wow/item/{item_id}",
                        token,
                        {"namespace": s.catalog_namespace_dynamic, "locale": s.catalog_locale},
                    )
        except Exception as e:
            logger.warning("Item lookup failed for id=%s: %s", item_id, e)
            return self._with_local_stack(ItemInfo.placeholder(item_id))

        return self._with_local_stack(parse_item_payload(item_id, item, media, dynamic))

    def _with_local_stack(self, info: ItemInfo) -> ItemInfo:
        if info.max_stack is None and self.stacks is not None:
            local = self.stacks.get(info.id)
            if local:
                info.max_stack = local
        return info

    async def search_items_by_name(self, query: str) -> List[ItemHit]:
        s = self.settings
        namespaces = [s.catalog_namespace_static, f"static-{s.catalog_region}"]
        hits: List[ItemHit] = []

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                token = await self._get_token(session)
                if not token:
                    return []

                for ns in namespaces:
                    data = await self._get_json(
                        session,
                        "/data/wow/search/item",
                        token,
                        {
                            "namespace": ns,
                            f"name.{s.catalog_locale}": query,
                            "_page": 1,
                            "_pageSize": SEARCH_PAGE_SIZE,
                            "orderby": "id",
                        },
                    )
                    for result in (data or {}).get("results") or []:
                        item_id = _dig(result, "data", "id")
                        if not item_id:
                            continue
                        name = _dig(result, "data", "name")
                        if isinstance(name, dict):
                            name = name.get(s.catalog_locale) or next(iter(name.values()), None)
                        hits.append(ItemHit(id=int(item_id), name=name or f"Item #{item_id}"))
                    if hits:
                        break
        except Exception as e:
            logger.warning("Item search failed for %r: %s", query, e)
            return []

        return hits

    async def fetch_icon(self, url: Optional[str]) -> Optional[bytes]:
        if not url:
            return None
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as resp:
                    if resp.status >= 400:
                        logger.warning("Icon download failed (%s): %s", resp.status, url)
                        return None
                    return await resp.read()
        except Exception as e:
            logger.warning("Icon download failed for %s: %s", url, e)
            return None
