# tests/test_resolver.py
from blackboard.api_client import ItemHit
from blackboard.wizard.resolver import (
    MAX_CANDIDATES,
    Candidates,
    ItemResolver,
    NotFound,
    ResolvedSingle,
)


class ExplodingCatalog:
    async def search_items_by_name(self, query):
        raise RuntimeError("catalog down")


async def test_numeric_query_skips_search(catalog):
    result = await ItemResolver(catalog).resolve(" 2770 ")
    assert result == ResolvedSingle(2770)
    assert catalog.search_calls == []


async def test_single_hit_resolves(catalog):
    assert await ItemResolver(catalog).resolve("Copper Ore") == ResolvedSingle(2770)


async def test_duplicates_are_collapsed_in_order(catalog):
    result = await ItemResolver(catalog).resolve("cloth")
    assert isinstance(result, Candidates)
    assert [c.item_id for c in result.items] == [2589, 2592]
    assert result.items[0].label == "Linen Cloth"


async def test_no_hits_and_failures_are_not_found(catalog):
    assert await ItemResolver(catalog).resolve("unobtainium") == NotFound("unobtainium")
    assert await ItemResolver(ExplodingCatalog()).resolve("copper") == NotFound("copper")


async def test_candidates_are_capped(catalog):
    catalog.hits["ore"] = [ItemHit(id=i, name=f"Ore {i}") for i in range(1, 40)]
    result = await ItemResolver(catalog).resolve("ore")
    assert len(result.items) == MAX_CANDIDATES
