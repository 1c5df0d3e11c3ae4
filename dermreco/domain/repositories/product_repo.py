# dermreco/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Dict, List, Sequence
from motor.motor_asyncio import AsyncIOMotorDatabase
from dermreco.domain.models.product import ProductRow

_PRODUCT_PROJECTION = {
    "_id": 0,
    "id": 1,
    "name": 1,
    "brand": 1,
    "product_type": 1,
    "price_usd": 1,
    "merchants": 1,
    "active_ingredients": 1,
    "all_ingredients": 1,
    "product_link": 1,
    "image_url": 1,
    "dupe_group_id": 1,
    "is_active": 1,
}


class ProductRepo:
    """
    Product catalog repository backed by the 'products' collection.
    Read-only from the recommendation pipeline's point of view.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def list_active_in_budget(self, budget_min: float, budget_max: float) -> List[ProductRow]:
        """Active products with budget_min <= price_usd <= budget_max, cheapest first."""
        cursor = self.col.find(
            {"is_active": True, "price_usd": {"$gte": budget_min, "$lte": budget_max}},
            _PRODUCT_PROJECTION,
        ).sort("price_usd", 1)
        return [ProductRow.model_validate(doc) async for doc in cursor]

    async def get_many_by_ids(self, ids: Sequence[str]) -> List[ProductRow]:
        if not ids:
            return []
        cursor = self.col.find({"id": {"$in": list(ids)}}, _PRODUCT_PROJECTION)
        return [ProductRow.model_validate(doc) async for doc in cursor]

    async def get_dupe_group_prices(self, group_ids: Sequence[str]) -> List[Dict]:
        """
        Return [{dupe_group_id, price_usd}, ...] for every ACTIVE product in the given groups,
        including products outside the current candidate set.
        """
        if not group_ids:
            return []
        cursor = self.col.find(
            {"dupe_group_id": {"$in": list(group_ids)}, "is_active": True},
            {"_id": 0, "dupe_group_id": 1, "price_usd": 1},
        )
        return await cursor.to_list(length=None)
