"""Deterministic intervention scripts.

Each friction type has up to three stages: 1 is helpful, 2 persuasive and
3 carries an incentive. Output depends only on the friction type, the
context and the stage, so identical inputs always yield identical scripts.
"""

from __future__ import annotations

from collections.abc import Callable

from ava.models.context import InterventionContext
from ava.models.friction import FrictionType
from ava.models.interventions import GeneratedIntervention, UIType

ITEM_FALLBACK = "this item"
CART_FALLBACK = "your cart"

STAGE_COUNTS: dict[FrictionType, int] = {
    FrictionType.exit_intent: 3,
    FrictionType.price_sensitivity: 3,
    FrictionType.high_interest_stalling: 3,
    FrictionType.indecision: 2,
    FrictionType.comparison_loop: 2,
    FrictionType.checkout_hesitation: 2,
}

UI_TYPES: dict[FrictionType, UIType] = {
    FrictionType.exit_intent: UIType.popup_product_card,
    FrictionType.price_sensitivity: UIType.popup_product_card,
    FrictionType.search_frustration: UIType.voice_only,
    FrictionType.specs_confusion: UIType.popup_small,
    FrictionType.indecision: UIType.popup_comparison,
    FrictionType.comparison_loop: UIType.popup_product_card,
    FrictionType.high_interest_stalling: UIType.popup_product_card,
    FrictionType.checkout_hesitation: UIType.voice_only,
    FrictionType.navigation_confusion: UIType.voice_only,
    FrictionType.gift_anxiety: UIType.popup_custom,
    FrictionType.form_fatigue: UIType.popup_small,
    FrictionType.visual_doom_scrolling: UIType.voice_only,
    FrictionType.trust_gap: UIType.popup_custom,
}

_CONFIDENT_SEARCH = 0.7

ScriptBuilder = Callable[[InterventionContext, int], tuple[str, UIType | None]]


def max_stage_for(friction_type: FrictionType | str) -> int:
    try:
        return STAGE_COUNTS.get(FrictionType(friction_type), 1)
    except ValueError:
        return 1


def _product_name(ctx: InterventionContext) -> str:
    if ctx.product is not None and ctx.product.product_name:
        return ctx.product.product_name
    return ITEM_FALLBACK


def _upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def _cart_label(ctx: InterventionContext) -> str:
    if ctx.cart_value:
        return f"your ${ctx.cart_value:.2f} cart"
    return CART_FALLBACK


def _exit_intent(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    name = _product_name(ctx)
    if stage == 1:
        if ctx.message_type == "cart_save":
            return f"Heading out? Keep {name} in your wishlist and we'll tell you if the price drops.", None
        if ctx.message_type == "product_save":
            return f"Save {name} for later so it's easy to find when you come back.", None
        return "Before you leave, want to save what you've looked at? We'll flag any price drops.", None
    if stage == 2:
        if ctx.cart_value:
            return f"{_upper_first(_cart_label(ctx))} is still here. Popular items can sell out, so now is a good time to finish.", None
        return f"Shoppers love {name} right now. Take another look before you go.", None
    if ctx.cart_value and ctx.cart_value > 50:
        return "Stay a moment: use code EXIT10 for 10% off this order.", None
    return "One last thing: shipping is on us with code FREESHIP.", None


def _price_sensitivity(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    name = _product_name(ctx)
    if stage == 1:
        return f"Good to know: {name} comes with free shipping, free returns and a two-year warranty.", None
    if stage == 2:
        price = ctx.product.product_price if ctx.product else None
        if price and price > 100:
            per_day = price / 1000
            return f"Spread over three years of daily use, {name} works out to about ${per_day:.2f} a day.", None
        return f"Verified buyers rate {name} 4.8 out of 5 for how well it holds up.", None
    return f"Here's 10% off {name} if you order today: SAVE10.", None


def _search_frustration(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    ui = UIType.popup_small if ctx.confidence and ctx.confidence > _CONFIDENT_SEARCH else None
    query = f'"{ctx.last_query}"' if ctx.last_query else "that"

    if ctx.message_type == "category_suggestion" and ctx.suggested_category:
        if ctx.suggested_brand:
            return f"After {ctx.suggested_brand} {ctx.suggested_category}? I can open that collection for you.", ui
        return f"No luck with {query}? Our {ctx.suggested_category} range might have it.", ui
    if ctx.message_type == "brand_suggestion" and ctx.suggested_brand:
        return f"Want to see everything we carry from {ctx.suggested_brand}?", ui
    if ctx.message_type == "comparison_help":
        return "Comparing a few options? Tell me what matters most and I'll line them up.", ui
    if ctx.intent_type == "specific_product":
        return "Looking for something specific? I can track it down or suggest a close match.", ui
    if ctx.intent_type == "research":
        return "Still researching? Tell me whether price, features or brand matters most and I'll narrow it down.", ui
    if ctx.price_sensitivity == "budget":
        return "Hunting for a bargain? I can show you what's on sale right now.", ui
    if ctx.price_sensitivity == "premium":
        return "Want the best of the range? Here are our top-rated picks.", ui
    return "Not finding it? Describe what you need and I'll search for you.", ui


def _specs_confusion(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    return f"Not sure {_product_name(ctx)} fits what you need? I can walk through the key specs.", None


def _indecision(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    names = [item.product_name or ITEM_FALLBACK for item in ctx.products[:2]]
    if stage == 1:
        if len(names) == 2:
            return f"Torn between {names[0]} and {names[1]}? Here they are side by side.", None
        return "Can't decide? I can put your favourites side by side.", None
    if len(names) == 2:
        return f"Most shoppers who compared these chose {names[0]}. Want to see why?", None
    return "Here's the option most shoppers end up choosing.", None


def _comparison_loop(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    name = _product_name(ctx)
    if stage == 1:
        return f"Comparing prices on {name}? We match any verified lower price.", None
    return f"Found {name} cheaper elsewhere? Send the link and we'll match it today.", None


def _high_interest_stalling(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    name = _product_name(ctx)
    if stage == 1:
        return f"Got a question about {name}? I'm happy to help.", None
    if stage == 2:
        if ctx.stock_level is not None and ctx.stock_level < 10:
            return f"Only {ctx.stock_level} of {name} left in stock.", None
        if ctx.recent_purchases:
            return f"{ctx.recent_purchases} people bought {name} recently.", None
        return f"Plenty of shoppers picked {name} today.", None
    return f"Ready to go with {name}? Order now and we'll upgrade your shipping for free.", None


_CHECKOUT_STAGE_ONE: dict[str, str] = {
    "checkout_no_progress": "Need a hand with checkout? Every order has free returns and round-the-clock support.",
    "shipping_indecision": "Standard shipping takes 3 to 5 days and is the usual pick. Express arrives in 1 to 2.",
    "payment_anxiety": "Payments are encrypted end to end and we never store card details.",
    "pre_order_hesitation": "Good to know before you order: anything can be returned within 30 days.",
    "cart_quick_close": "Your items are saved whenever you're ready.",
    "cart_abandonment_signal": "Your cart is still waiting. Let me know if anything is holding you back.",
    "address_field_loop": "Trouble with the address? You can type it freely and we'll format it.",
}


def _checkout_hesitation(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    primary = ctx.evidence[0] if ctx.evidence else ""
    popup = UIType.popup_small if primary in {"shipping_indecision", "payment_anxiety"} else None

    if stage == 1:
        if primary == "checkout_form_idle":
            field = ctx.field_name or "this field"
            return f"Need help with {field}? Take your time, {CART_FALLBACK} is saved.", None
        if primary == "repeated_cart_viewing":
            return f"Thinking over {_cart_label(ctx)}? I can walk you through checkout.", None
        script = _CHECKOUT_STAGE_ONE.get(primary)
        if script is not None:
            return script, popup
        if ctx.message_type == "shipping_help":
            return "Standard shipping takes 3 to 5 days. Faster options are available at checkout.", None
        if ctx.message_type == "payment_security":
            return "Checkout is encrypted, so your payment details stay safe.", None
        return "Need help finishing up? Every order includes free returns.", None

    if primary == "shipping_indecision":
        return "Order in the next 10 minutes and we'll upgrade you to express for free.", popup
    if primary in {"payment_anxiety", "pre_order_hesitation"}:
        return "Complete your order now and get 5% off your next one.", popup
    if primary in {"cart_quick_close", "repeated_cart_viewing", "cart_abandonment_signal"}:
        if ctx.cart_value and ctx.cart_value > 100:
            return f"Finish now and express shipping is free on {_cart_label(ctx)}.", UIType.popup_product_card
        return f"Complete checkout in the next 10 minutes to unlock a surprise discount on {_cart_label(ctx)}.", UIType.popup_product_card
    return f"Almost done. {_upper_first(_cart_label(ctx))} is held at today's prices for 10 minutes.", None


def _static(script: str) -> ScriptBuilder:
    def _build(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
        return script, None

    return _build


def _trust_gap(ctx: InterventionContext, stage: int) -> tuple[str, UIType | None]:
    location = ctx.user_location or "your area"
    return f"We're a verified seller shipping to {location}, with secure checkout and easy returns.", None


BUILDERS: dict[FrictionType, ScriptBuilder] = {
    FrictionType.exit_intent: _exit_intent,
    FrictionType.price_sensitivity: _price_sensitivity,
    FrictionType.search_frustration: _search_frustration,
    FrictionType.specs_confusion: _specs_confusion,
    FrictionType.indecision: _indecision,
    FrictionType.comparison_loop: _comparison_loop,
    FrictionType.high_interest_stalling: _high_interest_stalling,
    FrictionType.checkout_hesitation: _checkout_hesitation,
    FrictionType.navigation_confusion: _static("Looking for something? Tell me and I'll take you straight there."),
    FrictionType.gift_anxiety: _static("Buying a gift? We can include a gift receipt so it's easy to exchange."),
    FrictionType.form_fatigue: _static("Want to fill this in faster? Autofill can complete it for you."),
    FrictionType.visual_doom_scrolling: _static("Lots to scroll through. Tell me what you're after and I'll narrow it down."),
    FrictionType.trust_gap: _trust_gap,
}

GENERIC_SCRIPT = "Hi there! Let me know if you need a hand with anything."


def generate(
    friction_type: FrictionType | str,
    context: InterventionContext,
    stage: int = 1,
) -> GeneratedIntervention:
    try:
        kind = FrictionType(friction_type)
    except ValueError:
        return GeneratedIntervention(script=GENERIC_SCRIPT, ui_type=UIType.voice_only)

    bounded = min(max(stage, 1), max_stage_for(kind))
    script, ui_override = BUILDERS[kind](context, bounded)
    return GeneratedIntervention(script=script, ui_type=ui_override or UI_TYPES[kind])


__all__ = [
    "CART_FALLBACK",
    "GENERIC_SCRIPT",
    "ITEM_FALLBACK",
    "STAGE_COUNTS",
    "UI_TYPES",
    "generate",
    "max_stage_for",
]
