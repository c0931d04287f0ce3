"""Per-friction-type intervention context assembly.

Resolvers read tracker state and the triggering detection and return the
facts a script needs. Missing tracker data degrades to a thinner context,
never to an error.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ava.context.search_intent import analyze_search_intent
from ava.models.context import (
    CartContext,
    ComparisonContext,
    InterventionContext,
    ProductContext,
    ProductView,
    SearchContext,
)
from ava.models.events import Event
from ava.models.friction import FrictionDetection, FrictionType

_RECENT_PRODUCT_WINDOW = timedelta(seconds=60)
_DEFAULT_LOCATION = "your area"

# Checkout-extra keys copied from the detection context when present.
_CHECKOUT_EXTRAS = (
    "field_name",
    "idle_duration_ms",
    "time_since_checkout_ms",
    "shipping_views",
    "payment_views",
    "payment_method",
    "viewing_time_ms",
    "cart_opens",
    "time_since_add_ms",
)

_CHECKOUT_MESSAGE_TYPES: dict[str, str] = {
    "shipping_indecision": "shipping_help",
    "payment_anxiety": "payment_security",
    "pre_order_hesitation": "payment_security",
    "cart_quick_close": "cart_hesitation",
    "repeated_cart_viewing": "cart_hesitation",
    "cart_abandonment_signal": "cart_hesitation",
    "checkout_form_idle": "form_hesitation",
    "checkout_no_progress": "form_hesitation",
    "address_field_loop": "form_hesitation",
}


@dataclass(slots=True)
class ResolverInput:
    event: Event
    product: ProductContext = field(default_factory=ProductContext)
    cart: CartContext = field(default_factory=CartContext)
    comparison: ComparisonContext = field(default_factory=ComparisonContext)
    search: SearchContext = field(default_factory=SearchContext)
    detection: FrictionDetection | None = None
    user_location: str | None = None

    @property
    def now(self) -> datetime:
        return self.event.timestamp


Resolver = Callable[[ResolverInput], InterventionContext]


def resolve_exit_intent(inp: ResolverInput) -> InterventionContext:
    if inp.cart.items:
        top_item = max(inp.cart.items, key=lambda item: item.line_total)
        return InterventionContext(
            message_type="cart_save",
            product=ProductView(
                product_id=top_item.product_id,
                product_name=top_item.product_name,
                product_price=top_item.product_price,
            ),
            cart_items=inp.cart.items,
            cart_value=inp.cart.total_value,
            cart_count=inp.cart.item_count,
        )

    last = inp.product.last_product
    if last is not None and last.last_interaction is not None:
        if inp.now - last.last_interaction < _RECENT_PRODUCT_WINDOW:
            return InterventionContext(message_type="product_save", product=last)

    return InterventionContext(message_type="generic")


def resolve_price_sensitivity(inp: ResolverInput) -> InterventionContext:
    return InterventionContext(message_type="price_justification", product=inp.product.current_product)


def resolve_search_frustration(inp: ResolverInput) -> InterventionContext:
    intent = analyze_search_intent(inp.search)
    last_query = inp.search.queries[-1].query if inp.search.queries else ""

    if intent.category:
        message_type = "category_suggestion"
    elif intent.brand:
        message_type = "brand_suggestion"
    elif intent.intent_type == "comparison":
        message_type = "comparison_help"
    else:
        message_type = "generic_help"

    return InterventionContext(
        message_type=message_type,
        last_query=last_query,
        suggested_category=intent.category,
        suggested_brand=intent.brand,
        intent_type=intent.intent_type,
        price_sensitivity=intent.price_sensitivity,
        suggested_filters=intent.suggested_filters,
        confidence=intent.confidence,
    )


def resolve_specs_confusion(inp: ResolverInput) -> InterventionContext:
    return InterventionContext(message_type="spec_clarification", product=inp.product.current_product)


def resolve_indecision(inp: ResolverInput) -> InterventionContext:
    ranked = sorted(inp.comparison.products.values(), key=lambda item: item.view_count, reverse=True)
    return InterventionContext(message_type="comparison_help", products=ranked[:2])


def resolve_comparison_loop(inp: ResolverInput) -> InterventionContext:
    return InterventionContext(message_type="price_match", product=inp.product.current_product)


def resolve_high_interest_stalling(inp: ResolverInput) -> InterventionContext:
    product = inp.product.current_product
    time_spent_ms = 0.0
    if product is not None and product.focus_start is not None:
        time_spent_ms = max((inp.now - product.focus_start).total_seconds() * 1000.0, 0.0)
    return InterventionContext(
        message_type="urgency_nudge",
        product=product,
        stock_level=product.stock_level if product else None,
        recent_purchases=product.recent_purchases if product else None,
        time_spent_ms=time_spent_ms,
    )


def _checkout_message_type(primary: str, field_name: str) -> str:
    message_type = _CHECKOUT_MESSAGE_TYPES.get(primary)
    if message_type is not None:
        return message_type
    lowered = field_name.lower()
    if "shipping" in lowered:
        return "shipping_help"
    if "payment" in lowered or "card" in lowered:
        return "payment_security"
    return "generic_checkout_help"


def resolve_checkout_hesitation(inp: ResolverInput) -> InterventionContext:
    detection = inp.detection
    evidence = list(detection.evidence) if detection else []
    extras = detection.context if detection else {}

    field_name = inp.event.payload.get("field_name")
    values: dict[str, object] = {
        "field_name": field_name if isinstance(field_name, str) else None,
    }
    for key in _CHECKOUT_EXTRAS:
        value = extras.get(key)
        if value is not None:
            values[key] = value

    if inp.cart.last_opened_at is not None:
        values["time_since_cart_open_ms"] = max(
            (inp.now - inp.cart.last_opened_at).total_seconds() * 1000.0, 0.0
        )

    primary = evidence[0] if evidence else ""
    message_type = _checkout_message_type(primary, str(values.get("field_name") or ""))
    context = InterventionContext(
        message_type=message_type,
        evidence=evidence,
        cart_items=inp.cart.items,
        cart_value=inp.cart.total_value,
        cart_count=inp.cart.item_count,
    )
    # Detector context is untyped; let the model validate what it can.
    return InterventionContext.model_validate({**context.model_dump(), **values})


def _static(message_type: str) -> Resolver:
    def _resolve(inp: ResolverInput) -> InterventionContext:
        return InterventionContext(message_type=message_type)

    return _resolve


def resolve_trust_gap(inp: ResolverInput) -> InterventionContext:
    return InterventionContext(
        message_type="verification_badge",
        user_location=inp.user_location or _DEFAULT_LOCATION,
    )


RESOLVERS: dict[FrictionType, Resolver] = {
    FrictionType.exit_intent: resolve_exit_intent,
    FrictionType.price_sensitivity: resolve_price_sensitivity,
    FrictionType.search_frustration: resolve_search_frustration,
    FrictionType.specs_confusion: resolve_specs_confusion,
    FrictionType.indecision: resolve_indecision,
    FrictionType.comparison_loop: resolve_comparison_loop,
    FrictionType.high_interest_stalling: resolve_high_interest_stalling,
    FrictionType.checkout_hesitation: resolve_checkout_hesitation,
    FrictionType.navigation_confusion: _static("navigation_help"),
    FrictionType.gift_anxiety: _static("gift_receipt"),
    FrictionType.form_fatigue: _static("autofill_suggestion"),
    FrictionType.visual_doom_scrolling: _static("search_assist"),
    FrictionType.trust_gap: resolve_trust_gap,
}


def resolve(
    friction_type: FrictionType | str,
    event: Event,
    product: ProductContext | None = None,
    cart: CartContext | None = None,
    comparison: ComparisonContext | None = None,
    search: SearchContext | None = None,
    detection: FrictionDetection | None = None,
    *,
    user_location: str | None = None,
) -> InterventionContext:
    try:
        resolver = RESOLVERS[FrictionType(friction_type)]
    except ValueError:
        return InterventionContext(message_type="generic")

    return resolver(
        ResolverInput(
            event=event,
            product=product or ProductContext(),
            cart=cart or CartContext(),
            comparison=comparison or ComparisonContext(),
            search=search or SearchContext(),
            detection=detection,
            user_location=user_location,
        )
    )


__all__ = ["RESOLVERS", "ResolverInput", "resolve"]
