import logging
from typing import Dict, Iterable, List, Mapping
from urllib.parse import quote

from dermreco.domain.models.llm import LLMRankOutput, LLMRankedItem
from dermreco.domain.models.product import ProductRow, Recommendation, SkinTrait, UserProfile
from dermreco.domain.services.constants import VALID_VENDORS, VENDOR_SEARCH_URLS
from dermreco.domain.services.traits import concerns_treated_by, normalize_concern

logger = logging.getLogger(__name__)


async def build_dupe_group_max_prices(products: Iterable[ProductRow], product_repo) -> Dict[str, float]:
    """
    dupe_group_id -> highest price_usd among ACTIVE products of that group.
    Seeds from the rows at hand, then asks the catalog for the rest of each group.
    """
    max_prices: Dict[str, float] = {}

    def _offer(group_id, price) -> None:
        if not group_id:
            return
        price = float(price)
        if price > max_prices.get(group_id, 0.0):
            max_prices[group_id] = price

    for p in products:
        if p.is_active:
            _offer(p.dupe_group_id, p.price_usd)

    if max_prices:
        for doc in await product_repo.get_dupe_group_prices(list(max_prices)):
            _offer(doc.get("dupe_group_id"), doc.get("price_usd", 0))
    logger.debug(f"Dupe group max prices: {max_prices}")
    return max_prices


def user_concerns(traits: Iterable[SkinTrait], profile: UserProfile) -> List[str]:
    """Moderate/high detected traits + stated concerns, normalized and deduplicated."""
    concerns: Dict[str, None] = {}
    for t in traits:
        if t.severity in ("high", "moderate"):
            concerns.setdefault(normalize_concern(t.id), None)
    for c in profile.skin_concerns:
        concerns.setdefault(normalize_concern(c), None)
    return list(concerns)


def resolve_vendor(selected_vendor: str, merchants: List[str]) -> str:
    """
    LLM choice if allowed, else the product's first merchant if allowed,
    else the first allowed vendor.
    """
    chosen = (selected_vendor or "").strip().lower()
    if chosen in VALID_VENDORS:
        return chosen
    if merchants:
        first = merchants[0].strip().lower()
        if first in VALID_VENDORS:
            return first
    return VALID_VENDORS[0]


def resolve_url(product: ProductRow, vendor: str) -> str:
    if product.product_link:
        return product.product_link
    return VENDOR_SEARCH_URLS[vendor].format(q=quote(product.name, safe="!~*'()"))


def _to_recommendation(
    item: LLMRankedItem,
    product: ProductRow,
    dupe_max: Mapping[str, float],
    concerns: List[str],
) -> Recommendation:
    price = float(product.price_usd)
    retail = price
    if product.dupe_group_id:
        group_max = dupe_max.get(product.dupe_group_id)
        if group_max and group_max > price:
            retail = group_max

    vendor = resolve_vendor(item.selected_vendor, product.merchants)
    return Recommendation(
        id=product.id,
        name=product.name,
        concern_tags=concerns_treated_by(product.active_ingredients, concerns),
        key_ingredients=list(product.active_ingredients),
        price_usd=price,
        retail_usd=retail,
        vendor=vendor,
        url=resolve_url(product, vendor),
    )


async def to_recommendations(
    ranked: LLMRankOutput,
    products_by_id: Mapping[str, ProductRow],
    traits: List[SkinTrait],
    user_profile: UserProfile,
    *,
    product_repo,
) -> List[Recommendation]:
    """
    Map the LLM's ranked ids back to catalog rows and build Recommendation objects,
    in the LLM's order. Unknown ids (hallucinations) are logged and skipped.
    """
    dupe_max = await build_dupe_group_max_prices(products_by_id.values(), product_repo)
    concerns = user_concerns(traits, user_profile)

    recommendations: List[Recommendation] = []
    for item in ranked.items:
        product = products_by_id.get(item.product_id)
        if product is None:
            logger.warning(f"Product not found for LLM-selected id: {item.product_id}")
            continue
        recommendations.append(_to_recommendation(item, product, dupe_max, concerns))

    logger.info(f"Assembled {len(recommendations)}/{len(ranked.items)} recommendations")
    return recommendations
