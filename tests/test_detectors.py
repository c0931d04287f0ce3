from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

import pytest
from ava.friction import WILDCARD, DetectionInput, DetectorRegistry, build_default_registry
from ava.models.context import (
    CartContext,
    CartItem,
    ComparedProduct,
    ComparisonContext,
    ProductContext,
    ProductView,
    SearchContext,
    SearchQuery,
    TrackerContexts,
)
from ava.models.events import Event
from ava.models.friction import FrictionDetection, FrictionType
from ava.models.sessions import SessionActivity

MakeEvent = Callable[..., Event]


@pytest.fixture
def registry() -> DetectorRegistry:
    return build_default_registry()


def _only(detections: list[FrictionDetection]) -> FrictionDetection:
    assert len(detections) == 1, detections
    return detections[0]


class TestRegistry:
    def test_unknown_event_type(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        assert registry.detect(make_event("mouse_wiggle"), []) == []

    def test_failing_detector_is_isolated(
        self, make_event: MakeEvent, t0: datetime, caplog: pytest.LogCaptureFixture
    ) -> None:
        registry = DetectorRegistry()

        def explode(inp: DetectionInput) -> FrictionDetection | None:
            raise KeyError("missing")

        def steady(inp: DetectionInput) -> FrictionDetection | None:
            return FrictionDetection(type=FrictionType.trust_gap, confidence=0.5, timestamp=t0)

        registry.register("ping", explode)
        registry.register("ping", steady)
        with caplog.at_level(logging.ERROR, logger="ava.friction.registry"):
            detections = registry.detect(make_event("ping"), [])

        assert [item.type for item in detections] == [FrictionType.trust_gap]
        assert "explode" in caplog.text

    def test_wildcard_runs_for_every_event(self, make_event: MakeEvent, t0: datetime) -> None:
        registry = DetectorRegistry()

        @registry.detector(WILDCARD)
        def everything(inp: DetectionInput) -> FrictionDetection | None:
            return FrictionDetection(type=FrictionType.indecision, confidence=0.1, timestamp=t0)

        assert len(registry.detect(make_event("anything"), [])) == 1
        assert registry.event_types() == []

    def test_history_is_bounded(self, make_event: MakeEvent, t0: datetime) -> None:
        registry = DetectorRegistry(history_limit=3)
        seen: list[int] = []

        def count(inp: DetectionInput) -> FrictionDetection | None:
            seen.append(len(inp.history))
            return None

        registry.register("ping", count)
        history = [make_event("tick", seconds=i) for i in range(10)]
        registry.detect(make_event("ping", seconds=11), history)

        assert seen == [3]

    def test_register_requires_event_type(self) -> None:
        with pytest.raises(ValueError):
            DetectorRegistry().register([], lambda inp: None)


class TestPriceSignals:
    def test_exit_intent(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        detection = _only(registry.detect(make_event("exit_intent"), []))
        assert (detection.type, detection.confidence, detection.primary_evidence) == (
            FrictionType.exit_intent,
            1.0,
            "exit_detected",
        )

    def test_sort_cycling(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        detection = _only(registry.detect(make_event("sort_changed", {"pattern": "cycling"}), []))
        assert detection.primary_evidence == "price_sort_cycling"
        assert registry.detect(make_event("sort_changed", {"pattern": "single"}), []) == []

    def test_extended_price_hover(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        event = make_event("element_hover", {"element_type": "product_price", "hover_duration_ms": 6000})
        detection = _only(registry.detect(event, []))
        assert (detection.type, detection.confidence) == (FrictionType.price_sensitivity, 0.85)
        assert detection.primary_evidence == "extended_price_examination"

    def test_repeated_price_hovers(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        hover = {"element_type": "product_price", "hover_duration_ms": 800}
        history = [make_event("element_hover", hover, seconds=i) for i in range(4)]

        detection = _only(registry.detect(make_event("element_hover", hover, seconds=5), history))
        assert detection.primary_evidence == "multiple_price_comparisons"
        assert registry.detect(make_event("element_hover", hover), history[:2]) == []

    def test_malformed_payload_is_ignored(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        event = make_event("element_hover", {"element_type": "product_price", "hover_duration_ms": "long"})
        assert registry.detect(event, []) == []
        assert registry.detect(make_event("shipping_option_viewed", {"view_count": None}), []) == []

    def test_price_highlight(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        detection = _only(registry.detect(make_event("text_selection", {"context": "price"}), []))
        assert detection.confidence == 0.9
        assert registry.detect(make_event("text_selection", {"context": "title"}), []) == []


class TestSearchAndFilters:
    def test_zero_results_from_search_context(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        contexts = TrackerContexts(
            search=SearchContext(
                queries=[
                    SearchQuery(query="wool coat", results_count=0),
                    SearchQuery(query="coat", results_count=12),
                    SearchQuery(query="wool overcoat", results_count=0),
                ]
            )
        )
        detection = _only(registry.detect(make_event("search", {"query": "wool overcoat"}), [], contexts))
        assert detection.type == FrictionType.search_frustration
        assert detection.context["failed_queries"] == ["wool coat", "wool overcoat"]

    def test_zero_results_from_history(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        history = [make_event("search_zero_results", {"query": "gizmo"})]
        event = make_event("search", {"query": "gadget", "results_count": 0}, seconds=5)
        assert _only(registry.detect(event, history)).primary_evidence == "multiple_zero_results"

    def test_single_zero_result_is_not_enough(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        event = make_event("search", {"query": "gadget", "results_count": 0})
        assert registry.detect(event, []) == []

    def test_filter_toggle_loop(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        actions = ["applied", "removed", "applied"]
        history = [make_event("filter_changed", {"filter": "color", "action": a}, seconds=i) for i, a in enumerate(actions)]
        event = make_event("filter_changed", {"filter": "color", "action": "removed"}, seconds=5)

        detection = _only(registry.detect(event, history))
        assert (detection.type, detection.primary_evidence) == (FrictionType.indecision, "filter_loop")
        assert registry.detect(event, history[:1]) == []

    def test_filter_reset(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        assert _only(registry.detect(make_event("filter_reset"), [])).primary_evidence == "filter_loop"


class TestBrowsingPatterns:
    def test_size_chart_right_after_product_view(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        history = [make_event("product_view", {"product_id": "p-1"})]
        quick = make_event("size_chart_opened", seconds=2)
        slow = make_event("size_chart_opened", seconds=10)

        assert _only(registry.detect(quick, history)).primary_evidence == "sizing_anxiety"
        assert registry.detect(slow, history) == []

    def test_add_remove_cycle(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        history = [make_event("add_to_cart", {"product_id": "p-1"})]
        event = make_event("remove_from_cart", {"product_id": "p-1"}, seconds=20)

        assert _only(registry.detect(event, history)).primary_evidence == "add_remove_cycle"
        assert registry.detect(event, []) == []

    def test_comparison_loop_window(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        close = [make_event("similar_product_clicked", seconds=s) for s in (0, 10)]
        spread = [make_event("similar_product_clicked", seconds=s) for s in (0, 5)]
        event = make_event("similar_product_clicked", seconds=25)
        late = make_event("similar_product_clicked", seconds=40)

        assert _only(registry.detect(event, close)).type == FrictionType.comparison_loop
        assert registry.detect(late, spread) == []

    def test_navigation_oscillation(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        history = [
            make_event("page_navigation", {"page_name": "shoes"}),
            make_event("page_navigation", {"page_name": "boots"}, seconds=5),
        ]
        back = make_event("page_navigation", {"page_name": "shoes"}, seconds=10)
        onward = make_event("page_navigation", {"page_name": "sandals"}, seconds=10)

        assert _only(registry.detect(back, history)).type == FrictionType.navigation_confusion
        assert registry.detect(onward, history) == []

    @pytest.mark.parametrize(
        ("link", "friction_type"),
        [("about", FrictionType.trust_gap), ("shipping", FrictionType.trust_gap), ("returns", FrictionType.gift_anxiety)],
    )
    def test_footer_links(
        self, registry: DetectorRegistry, make_event: MakeEvent, link: str, friction_type: FrictionType
    ) -> None:
        assert _only(registry.detect(make_event("footer_interaction", {"type": link}), [])).type == friction_type

    def test_small_screen(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        narrow = make_event("device_context", {"device_type": "mobile", "viewport_width": 375})
        wide = make_event("device_context", {"device_type": "mobile", "viewport_width": 414})
        assert _only(registry.detect(narrow, [])).type == FrictionType.form_fatigue
        assert registry.detect(wide, []) == []

    def test_sustained_scroll(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        assert _only(registry.detect(make_event("scroll_velocity", {"sustained": True}), [])).confidence == 0.85
        assert registry.detect(make_event("scroll_velocity", {"sustained": False}), []) == []


class TestCheckoutSignals:
    @pytest.mark.parametrize(
        ("event_type", "payload", "evidence"),
        [
            ("address_field_loop", {}, "address_field_loop"),
            ("checkout_field_idle", {"field_name": "zip"}, "checkout_form_idle"),
            ("checkout_stalled", {}, "checkout_no_progress"),
            ("shipping_option_viewed", {"view_count": 3}, "shipping_indecision"),
            ("payment_method_viewed", {"view_count": 4}, "payment_anxiety"),
            ("place_order_hover", {}, "pre_order_hesitation"),
            ("cart_closed", {"open_duration_ms": 1500}, "cart_quick_close"),
            ("cart_opened", {"open_count": 3}, "repeated_cart_viewing"),
            ("cart_idle", {}, "cart_abandonment_signal"),
        ],
    )
    def test_checkout_catalogue(
        self,
        registry: DetectorRegistry,
        make_event: MakeEvent,
        event_type: str,
        payload: dict[str, object],
        evidence: str,
    ) -> None:
        detection = _only(registry.detect(make_event(event_type, payload), []))
        assert detection.type == FrictionType.checkout_hesitation
        assert detection.primary_evidence == evidence

    def test_checkout_thresholds(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        assert registry.detect(make_event("shipping_option_viewed", {"view_count": 2}), []) == []
        assert registry.detect(make_event("cart_closed", {"open_duration_ms": 4000}), []) == []
        assert registry.detect(make_event("cart_opened", {"open_count": 1}), []) == []


class TestConversionOpportunities:
    def test_high_engagement(self, registry: DetectorRegistry, make_event: MakeEvent, t0: datetime) -> None:
        product = ProductView(
            product_id="p-1",
            focus_start=t0 - timedelta(seconds=60),
            actions=["expanded_specs"],
        )
        contexts = TrackerContexts(product=ProductContext(current_product=product))

        detection = _only(registry.detect(make_event("heartbeat"), [], contexts))
        assert (detection.type, detection.primary_evidence) == (FrictionType.high_interest_stalling, "high_engagement")

    def test_returning_interest(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        contexts = TrackerContexts(
            product=ProductContext(current_product=ProductView(product_id="p-1")),
            comparison=ComparisonContext(products={"p-1": ComparedProduct(product_id="p-1", view_count=2)}),
        )
        detection = _only(registry.detect(make_event("product_view", {"product_id": "p-1"}), [], contexts))
        assert detection.primary_evidence == "returning_interest"

    def test_no_product_context(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        assert registry.detect(make_event("heartbeat"), []) == []

    def test_cart_builder_still_browsing(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        contexts = TrackerContexts(cart=CartContext(items=[CartItem(product_id="p-1", product_price=30)]))
        browsed = SessionActivity(viewed_product_ids={f"p-{i}" for i in range(5)})

        detection = _only(registry.detect(make_event("heartbeat"), [], contexts, activity=browsed))

        assert (detection.primary_evidence, detection.confidence) == ("cart_builder", 0.75)
        assert detection.context == {"cart_count": 1, "products_viewed": 5}

    def test_cart_builder_needs_enough_browsing(self, registry: DetectorRegistry, make_event: MakeEvent) -> None:
        contexts = TrackerContexts(cart=CartContext(items=[CartItem(product_id="p-1", product_price=30)]))
        browsed = SessionActivity(viewed_product_ids={f"p-{i}" for i in range(4)})

        assert registry.detect(make_event("heartbeat"), [], contexts, activity=browsed) == []

    def test_social_proof_for_new_visitor(self, registry: DetectorRegistry, make_event: MakeEvent, t0: datetime) -> None:
        product = ProductView(product_id="p-1", focus_start=t0 - timedelta(seconds=25))
        new_visitor = TrackerContexts(product=ProductContext(current_product=product), is_new_user=True)
        returning_visitor = TrackerContexts(product=ProductContext(current_product=product))

        detection = _only(registry.detect(make_event("heartbeat"), [], new_visitor))

        assert (detection.primary_evidence, detection.confidence) == ("social_proof_moment", 0.7)
        assert registry.detect(make_event("heartbeat"), [], returning_visitor) == []

    def test_naive_focus_start_is_read_as_utc(self, registry: DetectorRegistry, make_event: MakeEvent, t0: datetime) -> None:
        naive = (t0 - timedelta(seconds=60)).replace(tzinfo=None)
        product = ProductView(product_id="p-1", focus_start=naive, actions=["viewed_description"])
        contexts = TrackerContexts(product=ProductContext(current_product=product))

        detection = _only(registry.detect(make_event("heartbeat"), [], contexts))

        assert detection.primary_evidence == "high_engagement"
        assert detection.context["time_spent_ms"] == pytest.approx(60_000)
