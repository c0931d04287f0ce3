"""Base score deltas per scenario key.

Keys are evidence tags emitted by the detectors (falling back to friction
type names). Values are signed per-dimension impacts before confidence and
diminishing-returns weighting.
"""

from __future__ import annotations

from collections.abc import Mapping

from ava.models.scores import ScoreVector


def _d(
    intent: float = 0.0,
    friction: float = 0.0,
    clarity: float = 0.0,
    receptivity: float = 0.0,
    value: float = 0.0,
) -> ScoreVector:
    return ScoreVector(
        intent=intent,
        friction=friction,
        clarity=clarity,
        receptivity=receptivity,
        value=value,
    )


SCORE_DELTAS: Mapping[str, ScoreVector] = {
    # Engagement
    "high_engagement": _d(25, 10, 0, receptivity=10, value=5),
    "returning_interest": _d(30, 10, 5, value=10),
    "cart_builder": _d(20, 5, 0, receptivity=5, value=10),
    "social_proof_moment": _d(15, 5, 0, receptivity=10),
    # Decision fatigue
    "navigation_loops": _d(5, 20, -10),
    "filter_loop": _d(0, 30, -20),
    "search_refinement": _d(10, 20, 0),
    "multiple_zero_results": _d(10, 30, -15),
    "add_remove_cycle": _d(10, 25, -15),
    "doom_scrolling": _d(5, 25, -15),
    # Price sensitivity
    "price_sort_cycling": _d(0, 10, -10),
    "price_filtering": _d(10, 0, 5),
    "coupon_seeking": _d(10, 0, 5, value=-5),
    "downgrade_intent": _d(0, 10, 0, value=-10),
    "extended_price_examination": _d(10, 15, -5),
    "highlighted_price": _d(10, 15, -5),
    "multiple_price_comparisons": _d(5, 15, -5),
    # Trust gap
    "checking_credential_links": _d(10, 25, -15),
    # Comparison conflict
    "comparison_loop": _d(20, 30, -20),
    # Checkout anxiety
    "checkout_form_idle": _d(20, 25, -20),
    "checkout_no_progress": _d(20, 25, -15),
    "shipping_indecision": _d(20, 20, -15),
    "payment_anxiety": _d(10, 25, -20),
    "pre_order_hesitation": _d(25, 20, -15),
    "cart_quick_close": _d(10, 15, -10),
    "repeated_cart_viewing": _d(20, 20, -10),
    "cart_abandonment_signal": _d(10, 20, -10),
    # Gift anxiety
    "gift_uncertainty": _d(10, 25, -20),
    # Friction library
    "bad_landing": _d(-20, 40, 0, receptivity=-10),
    "sizing_anxiety": _d(0, 20, -10),
    "return_policy_check": _d(0, 15, -5),
    "help_seeking": _d(5, 20, 0, receptivity=10),
    "info_loop": _d(0, 35, -25),
    "variant_indecision": _d(0, 25, -15),
    "brief_tab_blur": _d(0, 10, -5),
    "cursor_idle_mid_page": _d(0, 10, -5),
    "region_rescroll": _d(5, 15, -5),
    "address_field_loop": _d(0, 25, -15),
    "small_screen_mobile": _d(0, 15, -5),
    # Exit
    "exit_detected": _d(0, 50, 0, receptivity=-15),
}


__all__ = ["SCORE_DELTAS"]
