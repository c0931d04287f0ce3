"""Built-in friction detectors.

Each detector pattern-matches one event (plus bounded history and tracker
state) and returns at most one detection. Confidence values are fixed per
detector and are the only place signal strength is judged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from ava.friction.payload import as_bool, as_float, as_int, as_str
from ava.friction.registry import DEFAULT_HISTORY_LIMIT, DetectionInput, DetectorRegistry
from ava.models.events import Event
from ava.models.friction import FrictionDetection, FrictionType

PRODUCT_VIEW_EVENTS = frozenset({"product_view", "view_item"})
SEARCH_EVENTS = frozenset({"search", "search_results", "search_zero_results"})

_SIZE_CHART_WINDOW = timedelta(seconds=3)
_SIMILAR_CLICK_WINDOW = timedelta(seconds=30)
_ZERO_RESULT_LOOKBACK = 5
_MIN_ZERO_RESULT_SEARCHES = 2
_MIN_FILTER_LOOPS = 2
_EXTENDED_PRICE_HOVER_MS = 5_000
_PRICE_COMPARISON_HOVERS = 5
_HIGH_ENGAGEMENT_MS = 45_000
_SOCIAL_PROOF_MS = 20_000
_CART_BUILDER_BROWSE_MARGIN = 3
_ENGAGED_ACTIONS = frozenset({"expanded_specs", "viewed_description"})


def _detection(
    event: Event,
    friction_type: FrictionType,
    confidence: float,
    evidence: str,
    **context: object,
) -> FrictionDetection:
    return FrictionDetection(
        type=friction_type,
        confidence=confidence,
        evidence=(evidence,),
        timestamp=event.timestamp,
        context={key: value for key, value in context.items() if value is not None},
    )


def _within(events: Iterable[Event], now: datetime, window: timedelta) -> list[Event]:
    return [item for item in events if timedelta(0) <= now - item.timestamp <= window]


def _is_price_hover(event: Event) -> bool:
    if event.event_type == "element_hover":
        return as_str(event.payload, "element_type") == "product_price"
    if event.event_type == "hover":
        return as_str(event.payload, "element") == "price"
    return False


# ----------------------------------------------------------------------
# Exit
# ----------------------------------------------------------------------


def detect_exit_intent(inp: DetectionInput) -> FrictionDetection | None:
    product = inp.contexts.product.last_product or inp.contexts.product.current_product
    return _detection(
        inp.event,
        FrictionType.exit_intent,
        1.0,
        "exit_detected",
        product_id=product.product_id if product else None,
        cart_item_count=inp.contexts.cart.item_count,
    )


# ----------------------------------------------------------------------
# Price sensitivity
# ----------------------------------------------------------------------


def detect_sort_cycling(inp: DetectionInput) -> FrictionDetection | None:
    if as_str(inp.event.payload, "pattern") != "cycling":
        return None
    return _detection(
        inp.event,
        FrictionType.price_sensitivity,
        0.9,
        "price_sort_cycling",
        sequence=inp.event.payload.get("sequence"),
    )


def detect_coupon_seeking(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.price_sensitivity,
        0.7,
        "coupon_seeking",
        action=as_str(inp.event.payload, "action"),
    )


def detect_variant_downgrade(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.price_sensitivity,
        0.8,
        "downgrade_intent",
        price_decrease=as_float(inp.event.payload, "price_decrease"),
    )


def detect_price_filtering(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.price_sensitivity,
        0.6,
        "price_filtering",
        range=inp.event.payload.get("range"),
    )


def detect_price_examination(inp: DetectionInput) -> FrictionDetection | None:
    if not _is_price_hover(inp.event):
        return None
    duration = as_float(inp.event.payload, "hover_duration_ms") or 0.0
    if duration >= _EXTENDED_PRICE_HOVER_MS:
        return _detection(
            inp.event,
            FrictionType.price_sensitivity,
            0.85,
            "extended_price_examination",
            hover_duration_ms=duration,
        )
    hovers = 1 + sum(1 for item in inp.history if _is_price_hover(item))
    if hovers >= _PRICE_COMPARISON_HOVERS:
        return _detection(
            inp.event,
            FrictionType.price_sensitivity,
            0.75,
            "multiple_price_comparisons",
            price_hovers=hovers,
        )
    return None


def detect_price_highlight(inp: DetectionInput) -> FrictionDetection | None:
    if as_str(inp.event.payload, "context") != "price":
        return None
    return _detection(inp.event, FrictionType.price_sensitivity, 0.9, "highlighted_price")


# ----------------------------------------------------------------------
# Search frustration and filter loops
# ----------------------------------------------------------------------


def detect_search_refinement(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.search_frustration,
        0.85,
        "search_refinement",
        original=as_str(inp.event.payload, "original_query"),
        refined=as_str(inp.event.payload, "refined_query"),
    )


def _search_outcomes(inp: DetectionInput) -> list[tuple[str, int | None]]:
    queries = inp.contexts.search.queries
    if queries:
        return [(item.query, item.results_count) for item in queries]

    outcomes: list[tuple[str, int | None]] = []
    for item in (*inp.history, inp.event):
        if item.event_type not in SEARCH_EVENTS:
            continue
        count = 0 if item.event_type == "search_zero_results" else as_int(item.payload, "results_count")
        outcomes.append((as_str(item.payload, "query") or "", count))
    return outcomes


def detect_zero_result_streak(inp: DetectionInput) -> FrictionDetection | None:
    recent = _search_outcomes(inp)[-_ZERO_RESULT_LOOKBACK:]
    failed = [query for query, count in recent if count == 0]
    if len(failed) < _MIN_ZERO_RESULT_SEARCHES:
        return None
    return _detection(
        inp.event,
        FrictionType.search_frustration,
        0.9,
        "multiple_zero_results",
        failed_queries=failed,
    )


def detect_filter_reset(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.indecision,
        0.8,
        "filter_loop",
        filter=as_str(inp.event.payload, "filter"),
    )


def _count_apply_remove_pairs(actions: Sequence[str]) -> int:
    pairs = 0
    applied = False
    for action in actions:
        if action == "applied":
            applied = True
        elif action == "removed" and applied:
            pairs += 1
            applied = False
    return pairs


def detect_filter_toggle_loop(inp: DetectionInput) -> FrictionDetection | None:
    payload = inp.event.payload
    name = as_str(payload, "filter")
    if name is None or as_str(payload, "action") != "removed":
        return None
    actions = [
        as_str(item.payload, "action") or ""
        for item in (*inp.history, inp.event)
        if item.event_type == "filter_changed" and as_str(item.payload, "filter") == name
    ]
    loops = _count_apply_remove_pairs(actions)
    if loops < _MIN_FILTER_LOOPS:
        return None
    return _detection(
        inp.event,
        FrictionType.indecision,
        0.8,
        "filter_loop",
        filter=name,
        loops=loops,
    )


# ----------------------------------------------------------------------
# Specs confusion and indecision
# ----------------------------------------------------------------------


def detect_spec_review_loop(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.specs_confusion,
        0.85,
        "info_loop",
        count=as_int(inp.event.payload, "loop_count"),
    )


def detect_size_chart_rush(inp: DetectionInput) -> FrictionDetection | None:
    if inp.event.event_type == "size_chart_first":
        return _detection(
            inp.event,
            FrictionType.specs_confusion,
            0.75,
            "sizing_anxiety",
            time_to_open_ms=as_float(inp.event.payload, "time_to_open_ms"),
        )

    last_view = next(
        (item for item in reversed(inp.history) if item.event_type in PRODUCT_VIEW_EVENTS),
        None,
    )
    if last_view is None:
        return None
    elapsed = inp.event.timestamp - last_view.timestamp
    if not timedelta(0) <= elapsed <= _SIZE_CHART_WINDOW:
        return None
    return _detection(
        inp.event,
        FrictionType.specs_confusion,
        0.75,
        "sizing_anxiety",
        time_to_open_ms=elapsed.total_seconds() * 1000.0,
        product_id=as_str(last_view.payload, "product_id"),
    )


def detect_variant_toggle(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.indecision,
        0.8,
        "variant_indecision",
        count=as_int(inp.event.payload, "toggle_count"),
    )


def detect_region_rescroll(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.indecision,
        0.65,
        "region_rescroll",
        count=as_int(inp.event.payload, "revisit_count"),
    )


def detect_add_remove_cycle(inp: DetectionInput) -> FrictionDetection | None:
    product_id = as_str(inp.event.payload, "product_id")
    if product_id is None:
        return None
    added_earlier = any(
        item.event_type == "add_to_cart" and as_str(item.payload, "product_id") == product_id
        for item in inp.history
    )
    if not added_earlier:
        return None
    return _detection(
        inp.event,
        FrictionType.indecision,
        0.85,
        "add_remove_cycle",
        product_id=product_id,
    )


def detect_comparison_loop(inp: DetectionInput) -> FrictionDetection | None:
    earlier = [item for item in inp.history if item.event_type == "similar_product_clicked"]
    clicks = 1 + len(_within(earlier, inp.event.timestamp, _SIMILAR_CLICK_WINDOW))
    if clicks < 3:
        return None
    return _detection(
        inp.event,
        FrictionType.comparison_loop,
        0.85,
        "comparison_loop",
        clicks=clicks,
    )


def detect_navigation_oscillation(inp: DetectionInput) -> FrictionDetection | None:
    navigations = [item for item in (*inp.history, inp.event) if item.event_type == "page_navigation"]
    if len(navigations) < 3:
        return None
    first, middle, last = (as_str(item.payload, "page_name") for item in navigations[-3:])
    if first is None or middle is None or first != last or first == middle:
        return None
    return _detection(
        inp.event,
        FrictionType.navigation_confusion,
        0.9,
        "navigation_loops",
        pages=[first, middle, last],
    )


# ----------------------------------------------------------------------
# Trust, gift and momentum
# ----------------------------------------------------------------------


def detect_quick_bounce(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.trust_gap,
        0.8,
        "bad_landing",
        product_id=as_str(inp.event.payload, "product_id"),
    )


def detect_return_policy_check(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(inp.event, FrictionType.trust_gap, 0.6, "return_policy_check")


def detect_help_seeking(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.trust_gap,
        0.7,
        "help_seeking",
        link=as_str(inp.event.payload, "link_text"),
    )


def detect_footer_trust_check(inp: DetectionInput) -> FrictionDetection | None:
    if as_str(inp.event.payload, "type") not in {"about", "shipping"}:
        return None
    return _detection(inp.event, FrictionType.trust_gap, 0.8, "checking_credential_links")


def detect_gift_anxiety(inp: DetectionInput) -> FrictionDetection | None:
    if as_str(inp.event.payload, "type") not in {"returns", "gift-guide"}:
        return None
    return _detection(inp.event, FrictionType.gift_anxiety, 0.85, "gift_uncertainty")


def detect_brief_tab_blur(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(inp.event, FrictionType.high_interest_stalling, 0.6, "brief_tab_blur")


def detect_cursor_idle(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(inp.event, FrictionType.high_interest_stalling, 0.5, "cursor_idle_mid_page")


def detect_doom_scrolling(inp: DetectionInput) -> FrictionDetection | None:
    if not as_bool(inp.event.payload, "sustained"):
        return None
    return _detection(
        inp.event,
        FrictionType.visual_doom_scrolling,
        0.85,
        "doom_scrolling",
        velocity=as_float(inp.event.payload, "velocity"),
    )


def detect_small_screen_form(inp: DetectionInput) -> FrictionDetection | None:
    width = as_float(inp.event.payload, "viewport_width")
    if as_str(inp.event.payload, "device_type") != "mobile" or width is None or width >= 400:
        return None
    return _detection(
        inp.event,
        FrictionType.form_fatigue,
        0.5,
        "small_screen_mobile",
        viewport_width=width,
    )


# ----------------------------------------------------------------------
# Checkout hesitation
# ----------------------------------------------------------------------


def detect_address_field_loop(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.85,
        "address_field_loop",
        field_name=as_str(inp.event.payload, "field_name"),
    )


def detect_checkout_field_idle(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.75,
        "checkout_form_idle",
        field_name=as_str(inp.event.payload, "field_name"),
        idle_duration_ms=as_float(inp.event.payload, "idle_duration_ms"),
    )


def detect_checkout_stalled(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.7,
        "checkout_no_progress",
        time_since_checkout_ms=as_float(inp.event.payload, "time_since_checkout_ms"),
    )


def detect_shipping_indecision(inp: DetectionInput) -> FrictionDetection | None:
    views = as_int(inp.event.payload, "view_count") or 0
    if views < 3:
        return None
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.7,
        "shipping_indecision",
        shipping_views=views,
    )


def detect_payment_anxiety(inp: DetectionInput) -> FrictionDetection | None:
    views = as_int(inp.event.payload, "view_count") or 0
    if views < 3:
        return None
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.75,
        "payment_anxiety",
        payment_views=views,
        payment_method=as_str(inp.event.payload, "payment_method"),
    )


def detect_pre_order_hesitation(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.7,
        "pre_order_hesitation",
        viewing_time_ms=as_float(inp.event.payload, "hover_duration_ms"),
    )


def detect_cart_quick_close(inp: DetectionInput) -> FrictionDetection | None:
    duration = as_float(inp.event.payload, "open_duration_ms")
    if duration is None or duration >= 3_000:
        return None
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.6,
        "cart_quick_close",
        viewing_time_ms=duration,
    )


def detect_repeated_cart_viewing(inp: DetectionInput) -> FrictionDetection | None:
    opens = as_int(inp.event.payload, "open_count") or 0
    if opens < 3:
        return None
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.7,
        "repeated_cart_viewing",
        cart_opens=opens,
    )


def detect_cart_idle(inp: DetectionInput) -> FrictionDetection | None:
    return _detection(
        inp.event,
        FrictionType.checkout_hesitation,
        0.65,
        "cart_abandonment_signal",
        time_since_add_ms=as_float(inp.event.payload, "time_since_add_ms"),
    )


# ----------------------------------------------------------------------
# Conversion opportunities
# ----------------------------------------------------------------------


def detect_conversion_opportunity(inp: DetectionInput) -> FrictionDetection | None:
    """Engaged shopper who has not acted yet.

    Checked in order: long focused view, cart builder still browsing, a
    revisit, then a new visitor lingering on a product.
    """
    product = inp.contexts.product.current_product
    time_on_product: float | None = None
    if product is not None and product.focus_start is not None:
        time_on_product = (inp.event.timestamp - product.focus_start).total_seconds() * 1000.0

    if product is not None and time_on_product is not None:
        if time_on_product > _HIGH_ENGAGEMENT_MS and _ENGAGED_ACTIONS.intersection(product.actions):
            return _detection(
                inp.event,
                FrictionType.high_interest_stalling,
                0.85,
                "high_engagement",
                product_id=product.product_id,
                time_spent_ms=time_on_product,
            )

    cart_count = inp.contexts.cart.item_count or 0
    viewed = inp.activity.products_viewed
    if cart_count >= 1 and viewed > cart_count + _CART_BUILDER_BROWSE_MARGIN:
        return _detection(
            inp.event,
            FrictionType.high_interest_stalling,
            0.75,
            "cart_builder",
            cart_count=cart_count,
            products_viewed=viewed,
        )

    if product is None:
        return None

    compared = inp.contexts.comparison.products.get(product.product_id)
    if compared is not None and compared.view_count >= 2:
        return _detection(
            inp.event,
            FrictionType.high_interest_stalling,
            0.9,
            "returning_interest",
            product_id=product.product_id,
            view_count=compared.view_count,
        )

    if inp.contexts.is_new_user and time_on_product is not None and time_on_product > _SOCIAL_PROOF_MS:
        return _detection(
            inp.event,
            FrictionType.high_interest_stalling,
            0.7,
            "social_proof_moment",
            product_id=product.product_id,
            time_spent_ms=time_on_product,
        )
    return None


def build_default_registry(history_limit: int = DEFAULT_HISTORY_LIMIT) -> DetectorRegistry:
    registry = DetectorRegistry(history_limit=history_limit)

    registry.register("exit_intent", detect_exit_intent)

    registry.register("sort_changed", detect_sort_cycling)
    registry.register("coupon_exploration", detect_coupon_seeking)
    registry.register("variant_downgraded", detect_variant_downgrade)
    registry.register("price_filter_changed", detect_price_filtering)
    registry.register(("element_hover", "hover"), detect_price_examination)
    registry.register("text_selection", detect_price_highlight)

    registry.register("semantic_search_refinement", detect_search_refinement)
    registry.register(SEARCH_EVENTS, detect_zero_result_streak)
    registry.register("filter_reset", detect_filter_reset)
    registry.register("filter_changed", detect_filter_toggle_loop)

    registry.register("spec_review_loop", detect_spec_review_loop)
    registry.register(("size_chart_opened", "size_chart_first"), detect_size_chart_rush)
    registry.register("variant_toggle", detect_variant_toggle)
    registry.register("region_rescroll", detect_region_rescroll)
    registry.register("remove_from_cart", detect_add_remove_cycle)
    registry.register("similar_product_clicked", detect_comparison_loop)
    registry.register("page_navigation", detect_navigation_oscillation)

    registry.register("quick_bounce", detect_quick_bounce)
    registry.register("return_hover", detect_return_policy_check)
    registry.register("faq_visit", detect_help_seeking)
    registry.register("footer_interaction", detect_footer_trust_check)
    registry.register("footer_interaction", detect_gift_anxiety)
    registry.register("brief_tab_blur", detect_brief_tab_blur)
    registry.register("cursor_idle_mid_page", detect_cursor_idle)
    registry.register("scroll_velocity", detect_doom_scrolling)
    registry.register("device_context", detect_small_screen_form)

    registry.register("address_field_loop", detect_address_field_loop)
    registry.register("checkout_field_idle", detect_checkout_field_idle)
    registry.register("checkout_stalled", detect_checkout_stalled)
    registry.register("shipping_option_viewed", detect_shipping_indecision)
    registry.register("payment_method_viewed", detect_payment_anxiety)
    registry.register("place_order_hover", detect_pre_order_hesitation)
    registry.register("cart_closed", detect_cart_quick_close)
    registry.register("cart_opened", detect_repeated_cart_viewing)
    registry.register("cart_idle", detect_cart_idle)

    registry.register(
        (*PRODUCT_VIEW_EVENTS, "product_detail", "heartbeat"),
        detect_conversion_opportunity,
    )
    return registry


__all__ = ["PRODUCT_VIEW_EVENTS", "SEARCH_EVENTS", "build_default_registry"]
