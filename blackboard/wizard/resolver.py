# blackboard/wizard/resolver.py
import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Union

from ..api_client import ItemHit
from ..utils.numbers import is_numeric

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 25


class ItemSearch(Protocol):
    async def search_items_by_name(self, query: str) -> List[ItemHit]:
        ...


@dataclass(frozen=True)
class ResolvedSingle:
    item_id: int


@dataclass(frozen=True)
class Candidate:
    item_id: int
    label: str


@dataclass(frozen=True)
class Candidates:
    items: List[Candidate] = field(default_factory=list)


@dataclass(frozen=True)
class NotFound:
    query: str


Resolution = Union[ResolvedSingle, Candidates, NotFound]


class ItemResolver:
    def __init__(self, catalog: ItemSearch):
        self.catalog = catalog

    async def resolve(self, query: str) -> Resolution:
        text = (query or "").strip()
        if is_numeric(text):
            return ResolvedSingle(int(text))
        if not text:
            return NotFound(text)

        try:
            hits = await self.catalog.search_items_by_name(text)
        except Exception as e:
            logger.warning("Item search raised for %r, treating as no match: %s", text, e)
            hits = []

        seen = set()
        unique: List[Candidate] = []
        for hit in hits:
            if hit.id in seen:
                continue
            seen.add(hit.id)
            unique.append(Candidate(item_id=hit.id, label=hit.name or f"Item #{hit.id}"))

        logger.info("Item search %r -> %s unique hits", text, len(unique))

        if not unique:
            return NotFound(text)
        if len(unique) == 1:
            return ResolvedSingle(unique[0].item_id)
        return Candidates(unique[:MAX_CANDIDATES])
