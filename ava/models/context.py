"""Read models for tracker state and friction-specific intervention context."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field, model_validator

IntentType = Literal["browsing", "specific_product", "comparison", "research"]
PriceSensitivity = Literal["budget", "premium", "neutral"]


def _assume_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=UTC)
    return value


# Browser trackers may drop the offset; their clocks report UTC.
TrackerTime = Annotated[datetime, AfterValidator(_assume_utc)]


class ProductView(BaseModel):
    product_id: str
    product_name: str | None = None
    product_price: float | None = None
    focus_start: TrackerTime | None = None
    last_interaction: TrackerTime | None = None
    actions: list[str] = Field(default_factory=list)
    stock_level: int | None = None
    recent_purchases: int | None = None


class ProductContext(BaseModel):
    current_product: ProductView | None = None
    last_product: ProductView | None = None


class CartItem(BaseModel):
    product_id: str
    product_name: str | None = None
    product_price: float = 0.0
    quantity: int = Field(default=1, ge=0)
    total_price: float | None = None

    @property
    def line_total(self) -> float:
        if self.total_price is not None:
            return self.total_price
        return self.product_price * self.quantity


class CartContext(BaseModel):
    items: list[CartItem] = Field(default_factory=list)
    total_value: float | None = None
    item_count: int | None = None
    checkout_step: str | None = None
    last_opened_at: TrackerTime | None = None

    @model_validator(mode="after")
    def _derive_totals(self) -> CartContext:
        if self.total_value is None:
            self.total_value = round(sum(item.line_total for item in self.items), 2)
        if self.item_count is None:
            self.item_count = sum(item.quantity for item in self.items)
        return self

    @property
    def in_payment(self) -> bool:
        return self.checkout_step == "payment"


class ComparedProduct(BaseModel):
    product_id: str
    product_name: str | None = None
    product_price: float | None = None
    view_count: int = Field(default=0, ge=0)
    last_viewed: TrackerTime | None = None


class ComparisonContext(BaseModel):
    products: dict[str, ComparedProduct] = Field(default_factory=dict)


class SearchQuery(BaseModel):
    query: str
    results_count: int | None = None
    timestamp: TrackerTime | None = None


class SearchContext(BaseModel):
    queries: list[SearchQuery] = Field(default_factory=list)


class TrackerContexts(BaseModel):
    """Snapshot of the external per-session trackers, consumed read-only."""

    product: ProductContext = Field(default_factory=ProductContext)
    cart: CartContext = Field(default_factory=CartContext)
    comparison: ComparisonContext = Field(default_factory=ComparisonContext)
    search: SearchContext = Field(default_factory=SearchContext)
    user_location: str | None = None
    is_new_user: bool = False


class SearchIntent(BaseModel):
    category: str | None = None
    brand: str | None = None
    intent_type: IntentType = "browsing"
    price_sensitivity: PriceSensitivity = "neutral"
    confidence: float = Field(default=0.0, ge=0.0, le=0.95)
    suggested_filters: list[str] = Field(default_factory=list)


class InterventionContext(BaseModel):
    """Payload used to render one intervention.

    Only ``message_type`` is always present; every other field is optional so
    resolvers can degrade to a minimal context when tracker data is missing.
    """

    message_type: str = "generic"
    product: ProductView | None = None
    products: list[ComparedProduct] = Field(default_factory=list)
    cart_items: list[CartItem] = Field(default_factory=list)
    cart_value: float | None = None
    cart_count: int | None = None

    last_query: str | None = None
    suggested_category: str | None = None
    suggested_brand: str | None = None
    intent_type: IntentType | None = None
    price_sensitivity: PriceSensitivity | None = None
    suggested_filters: list[str] = Field(default_factory=list)
    confidence: float | None = None

    evidence: list[str] = Field(default_factory=list)
    field_name: str | None = None
    idle_duration_ms: float | None = None
    time_since_checkout_ms: float | None = None
    time_since_cart_open_ms: float | None = None
    shipping_views: int | None = None
    payment_views: int | None = None
    payment_method: str | None = None
    cart_opens: int | None = None
    viewing_time_ms: float | None = None
    time_since_add_ms: float | None = None

    stock_level: int | None = None
    recent_purchases: int | None = None
    time_spent_ms: float | None = None
    user_location: str | None = None


__all__ = [
    "CartContext",
    "CartItem",
    "ComparedProduct",
    "ComparisonContext",
    "IntentType",
    "InterventionContext",
    "PriceSensitivity",
    "ProductContext",
    "ProductView",
    "SearchContext",
    "SearchIntent",
    "SearchQuery",
    "TrackerContexts",
]
