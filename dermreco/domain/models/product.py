from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Literal
from datetime import datetime

Severity = Literal["low", "moderate", "high"]
Vendor = Literal["amazon", "yesstyle", "sephora"]


class ProductRow(BaseModel):
    """Full catalog row from the 'products' collection."""
    id: str
    name: str
    brand: str = ""
    product_type: str = ""
    price_usd: float
    merchants: List[str] = []
    active_ingredients: List[str] = []
    all_ingredients: Optional[str] = None
    product_link: Optional[str] = None
    image_url: Optional[str] = None
    dupe_group_id: Optional[str] = None
    is_active: bool = True

    model_config = {"frozen": True}  # immuable = safe


class CandidateProduct(BaseModel):
    """
    Compact projection sent to the LLM.
    dupe_group_id / product_link / all_ingredients are left out on purpose to keep the payload small.
    """
    id: str
    name: str
    brand: str
    product_type: str
    price_usd: float
    active_ingredients: List[str]
    merchants: List[str]

    model_config = {"frozen": True}

    @classmethod
    def from_row(cls, row: ProductRow) -> "CandidateProduct":
        return cls(
            id=row.id,
            name=row.name,
            brand=row.brand,
            product_type=row.product_type,
            price_usd=float(row.price_usd),
            active_ingredients=list(row.active_ingredients),
            merchants=list(row.merchants),
        )


class SkinTrait(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    severity: Severity
    description: str = ""

    model_config = {"frozen": True}


class UserProfile(BaseModel):
    skin_concerns: List[str] = []
    skin_goals: List[str] = []
    ingredients_to_avoid: List[str] = []
    budget_min_usd: float
    budget_max_usd: float

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_budget(self):
        if self.budget_min_usd > self.budget_max_usd:
            raise ValueError("budget_min_usd must be <= budget_max_usd")
        return self


class SkinAnalysis(BaseModel):
    id: str
    user_id: str
    status: str
    detected_traits: List[SkinTrait] = []
    confidence_score: Optional[float] = None
    completed_at: Optional[datetime] = None


class Recommendation(BaseModel):
    """The only type leaving the recommendation core."""
    id: str
    name: str
    concern_tags: List[str]
    key_ingredients: List[str]
    price_usd: float
    retail_usd: float
    vendor: Vendor
    url: str

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _retail_not_below_price(self):
        if self.retail_usd < self.price_usd:
            raise ValueError("retail_usd must be >= price_usd")
        return self
