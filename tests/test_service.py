"""Tests for the guide focus service wrapper."""

import logging

import pytest

from guide_focus.cursor import CursorOverlayMode
from guide_focus.derivation import FocusSource
from guide_focus.media import FocusFallbackReason
from guide_focus.schema import STEP_IMAGE_COORDINATE_SPACE, GuideStep, StepImage
from guide_focus.service import (
    DerivationStats,
    GuideFocusService,
    get_guide_focus_service,
    reset_guide_focus_service,
)
from guide_focus.transform import Size

PX = STEP_IMAGE_COORDINATE_SPACE


@pytest.fixture
def service():
    return GuideFocusService()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoading:
    def test_load_from_version_payload(self, service, guide_version_payload, caplog):
        spec, version = guide_version_payload
        steps = service.load_steps(spec)
        with caplog.at_level(logging.WARNING, logger="guide_focus.service"):
            images = service.load_step_images(version)

        assert [s.id for s in steps] == ["step_1", "step_2", "step_3"]
        assert [i.step_id for i in images] == ["step_1", "step_2"]
        assert service.get_stats()["records_skipped"] == 1
        assert "position 2" in caplog.text

    def test_load_from_lists(self, service):
        steps = service.load_steps([{"id": "a"}, GuideStep(id="b")])
        images = service.load_step_images({"step_images": [{"step_id": "a"}]})
        assert [s.id for s in steps] == ["a", "b"]
        assert [i.step_id for i in images] == ["a"]

    @pytest.mark.parametrize("payload", [None, "steps", {"steps": "nope"}, {"other": []}])
    def test_load_unusable_payload(self, service, payload):
        assert service.load_steps(payload) == []
        assert service.load_step_images(payload) == []


# ---------------------------------------------------------------------------
# Annotation
# ---------------------------------------------------------------------------

class TestAnnotate:
    def test_stats(self, service, three_step_guide):
        steps, images = three_step_guide
        derived = service.annotate(steps, images)

        assert set(derived) == {"step_1", "step_2", "step_3"}
        stats = service.get_stats()
        assert stats["guides_annotated"] == 1
        assert stats["steps_annotated"] == 3
        assert stats["by_source"][FocusSource.RADAR.value] == 2
        assert stats["by_source"][FocusSource.CLAMPED_CLICK.value] == 1
        assert stats["by_source"][FocusSource.MANUAL_OVERRIDE.value] == 0

    def test_stats_defaults(self):
        stats = DerivationStats()
        assert stats.guides_annotated == 0
        assert set(stats.by_source) == {source.value for source in FocusSource}


# ---------------------------------------------------------------------------
# Render plans
# ---------------------------------------------------------------------------

class TestPlanStep:
    @pytest.fixture
    def annotated(self, service, guide_version_payload):
        spec, version = guide_version_payload
        steps = service.load_steps(spec)
        derived = service.annotate(steps, service.load_step_images(version))
        return {s.id: s for s in steps}, derived

    def test_card_uses_preview(self, service, annotated):
        steps, derived = annotated
        plan = service.plan_step(steps["step_1"], derived["step_1"].image, surface="card")

        assert plan.variant.selected_variant == "preview"
        assert plan.focus_transform.has_focus_crop
        assert plan.apply_focus
        assert plan.fallback_reason is None
        assert plan.show_radar
        assert plan.radar_percent.left == pytest.approx(640 / 1920 * 100)
        assert plan.focus_transform.radar_percent_in_crop is not None

    def test_detail_uses_full(self, service, annotated):
        steps, derived = annotated
        plan = service.plan_step(steps["step_1"], derived["step_1"].image, surface="detail")
        assert plan.surface == "detail"
        assert plan.variant.selected_variant == "full"

    def test_explicit_viewport(self, service, annotated):
        steps, derived = annotated
        plan = service.plan_step(steps["step_1"], derived["step_1"].image, viewport=Size(400, 800))
        crop = plan.focus_transform.crop_rect
        assert crop.height > crop.width

    def test_non_click_step_has_no_radar(self, service, annotated):
        steps, derived = annotated
        plan = service.plan_step(steps["step_2"], derived["step_2"].image)
        assert derived["step_2"].focus_source == FocusSource.CLAMPED_CLICK
        assert plan.apply_focus
        assert plan.radar_percent is None
        assert plan.show_radar is False

    def test_raw_image_falls_back(self, service):
        step = GuideStep(id="s1", kind="click_target")
        plan = service.plan_step(step, StepImage(step_id="s1", width=1000, height=800))
        assert plan.fallback_reason == FocusFallbackReason.MISSING_RENDER_HINTS
        assert plan.apply_focus is False
        assert plan.variant.selected_variant is None

    def test_no_image(self, service):
        assert service.plan_step(GuideStep(id="s1"), None) is None

    def test_unknown_surface(self, service):
        with pytest.raises(ValueError):
            service.plan_step(GuideStep(id="s1"), StepImage(step_id="s1"), surface="thumbnail")

    def test_overlay_none_hides_radar(self, annotated):
        steps, derived = annotated
        service = GuideFocusService(cursor_overlay_mode="none")
        plan = service.plan_step(steps["step_1"], derived["step_1"].image)
        assert plan.show_radar is False
        assert plan.radar_percent is not None

    def test_captured_cursor_without_track_shows_radar(self, annotated):
        steps, derived = annotated
        service = GuideFocusService(cursor_overlay_mode="captured_cursor")
        plan = service.plan_step(steps["step_1"], derived["step_1"].image)
        assert plan.cursor_track is None
        assert plan.show_captured_cursor is False
        assert plan.show_radar is True

    def test_captured_cursor_with_track(self):
        service = GuideFocusService(cursor_overlay_mode="captured_cursor")
        step = GuideStep(id="s1", kind="click_target")
        image = StepImage.model_validate(
            {
                "step_id": "s1",
                "width": 200,
                "height": 100,
                "radar": {"x": 100, "y": 50, "coordinate_space": PX},
                "cursor_track": {
                    "coordinate_space": PX,
                    "points": [{"t_ms": 0, "x": 10, "y": 10}, {"t_ms": 200, "x": 100, "y": 50, "kind": "mouse_down"}],
                },
            }
        )
        derived = service.annotate([step], [image])
        plan = service.plan_step(step, derived["s1"].image)
        assert plan.show_captured_cursor is True
        assert plan.show_radar is False
        assert len(plan.cursor_track.points) == 2

    def test_plan_guide(self, service, annotated):
        steps, derived = annotated
        plans = service.plan_guide(list(steps.values()), derived, surface="detail")
        assert set(plans) == {"step_1", "step_2"}
        assert all(plan.surface == "detail" for plan in plans.values())


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------

class TestSurfaceFocusRules:
    @pytest.fixture
    def weak_hint_image(self):
        return StepImage.model_validate(
            {
                "step_id": "s1",
                "width": 1000,
                "height": 800,
                "radar": {"x": 20, "y": 20, "coordinate_space": PX},
                "render_hints": {
                    "source": "radar",
                    "confidence": 0.35,
                    "recommended_zoom_scale": 1.3,
                    "focus_center": {"x": 800, "y": 600, "coordinate_space": PX},
                },
            }
        )

    def test_detail_applies_crop_and_hides_radar_outside_it(self, service, weak_hint_image):
        plan = service.plan_step(GuideStep(id="s1", kind="click_target"), weak_hint_image, surface="detail")

        assert plan.focus_transform.has_focus_crop
        assert plan.focus_transform.radar_percent_in_crop is None
        assert plan.fallback_reason == FocusFallbackReason.WEAK_POINTER_FOCUS_HINT
        assert plan.apply_focus is True
        assert plan.radar_percent is not None
        assert plan.show_radar is False

    def test_card_drops_weak_focus_and_shows_radar(self, service, weak_hint_image):
        plan = service.plan_step(GuideStep(id="s1", kind="click_target"), weak_hint_image, surface="card")

        assert plan.fallback_reason == FocusFallbackReason.WEAK_POINTER_FOCUS_HINT
        assert plan.apply_focus is False
        assert plan.show_radar is True

    def test_card_size_prefers_full_variant_over_preview(self, service):
        image = StepImage.model_validate(
            {
                "step_id": "s1",
                "radar": {"x": 1800, "y": 1000, "coordinate_space": PX},
                "variants": {
                    "preview": {"download_url": "https://media.example/p.jpg", "width": 768, "height": 432},
                    "full": {"download_url": "https://media.example/f.jpg", "width": 1920, "height": 1080},
                },
            }
        )
        plan = service.plan_step(GuideStep(id="s1", kind="click_target"), image, surface="card")

        assert plan.variant.selected_variant == "preview"
        assert plan.radar_percent.left == pytest.approx(1800 / 1920 * 100)
        assert plan.radar_percent.top == pytest.approx(1000 / 1080 * 100)
        assert plan.show_radar is True


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

class TestServiceSingleton:
    def test_singleton(self):
        assert get_guide_focus_service() is get_guide_focus_service()

    def test_overlay_mode_from_env(self, monkeypatch):
        monkeypatch.setenv("GUIDE_CURSOR_OVERLAY_MODE", "captured_cursor")
        reset_guide_focus_service()
        assert get_guide_focus_service().cursor_overlay_mode == CursorOverlayMode.CAPTURED_CURSOR

    def test_bad_overlay_mode_defaults(self, monkeypatch):
        monkeypatch.setenv("GUIDE_CURSOR_OVERLAY_MODE", "laser")
        reset_guide_focus_service()
        assert get_guide_focus_service().cursor_overlay_mode == CursorOverlayMode.RADAR_DOT

    def test_tuning_from_env(self, monkeypatch):
        monkeypatch.setenv("GUIDE_FOCUS_CLICK_ZOOM", "2.2")
        assert get_guide_focus_service().tuning.click_zoom == 2.2
