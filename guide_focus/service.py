"""
Guide Focus Service: annotate a guide version and plan how each step renders.

Wraps the pure focus modules for callers holding raw JSON from the guide
backend (a guide spec with "steps" and guide media with "step_images").

Usage:
    from guide_focus import get_guide_focus_service

    service = get_guide_focus_service()
    steps = service.load_steps(guide_spec)
    images = service.load_step_images(version["guide_media"])
    derived = service.annotate(steps, images)
    plans = service.plan_guide(steps, derived, surface="card")
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel, ValidationError

from guide_focus.config import FocusTuning, get_focus_tuning
from guide_focus.cursor import (
    CursorOverlayMode,
    RenderableCursorTrack,
    resolve_cursor_overlay_mode,
    resolve_renderable_cursor_track,
)
from guide_focus.derivation import DerivedStepImage, FocusSource, derive_guide_step_images_with_focus
from guide_focus.media import (
    FocusFallbackReason,
    MediaSurface,
    ResolvedVariant,
    get_radar_percent,
    get_step_image_dimensions,
    resolve_step_focus_fallback_reason,
    resolve_step_image_variant,
    should_render_step_radar,
)
from guide_focus.schema import GuideStep, StepImage
from guide_focus.transform import FocusTransformResult, RadarPercent, Size, compute_focus_transform_v1

logger = logging.getLogger(__name__)


@dataclass
class DerivationStats:
    """Track derivation outcomes across annotated guides."""

    guides_annotated: int = 0
    steps_annotated: int = 0
    records_skipped: int = 0
    by_source: Dict[str, int] = field(
        default_factory=lambda: {source.value: 0 for source in FocusSource}
    )


@dataclass
class StepRenderPlan:
    """Everything a card or detail view needs to draw one step image."""

    step_id: str
    surface: str
    variant: ResolvedVariant
    focus_transform: FocusTransformResult
    fallback_reason: Optional[FocusFallbackReason]
    apply_focus: bool
    radar_percent: Optional[RadarPercent]
    show_radar: bool
    cursor_track: Optional[RenderableCursorTrack]
    show_captured_cursor: bool


def _records_from(payload: Any, *keys: str) -> List[Any]:
    """Unwrap a list of records from a payload, following nested keys."""
    current = payload
    for key in keys:
        if isinstance(current, list):
            break
        if not isinstance(current, dict):
            return []
        current = current.get(key)
    return current if isinstance(current, list) else []


class GuideFocusService:
    """
    High-level focus service for guide rendering.

    Loads step and step-image records leniently, runs focus derivation once
    per guide version, and resolves per-step render plans.
    """

    def __init__(
        self,
        tuning: Optional[FocusTuning] = None,
        cursor_overlay_mode: Any = None,
    ):
        self.tuning = tuning or get_focus_tuning()
        self.cursor_overlay_mode = resolve_cursor_overlay_mode(cursor_overlay_mode)
        self.stats = DerivationStats()

    def _load(self, model: Type[BaseModel], records: List[Any], label: str) -> List[Any]:
        loaded = []
        for position, record in enumerate(records):
            if isinstance(record, model):
                loaded.append(record)
                continue
            try:
                loaded.append(model.model_validate(record))
            except ValidationError as e:
                self.stats.records_skipped += 1
                logger.warning(f"Skipping malformed {label} at position {position}: {e.error_count()} error(s)")
        return loaded

    def load_steps(self, payload: Any) -> List[GuideStep]:
        """Load steps from a guide spec dict ({"steps": [...]}) or a list."""
        return self._load(GuideStep, _records_from(payload, "steps"), "step")

    def load_step_images(self, payload: Any) -> List[StepImage]:
        """
        Load step images from a list, {"step_images": [...]}, or a version
        payload carrying {"guide_media": {"step_images": [...]}}.
        """
        if isinstance(payload, dict) and "guide_media" in payload:
            records = _records_from(payload, "guide_media", "step_images")
        else:
            records = _records_from(payload, "step_images")
        return self._load(StepImage, records, "step image")

    def annotate(
        self,
        steps: Sequence[GuideStep],
        step_images: Sequence[StepImage],
    ) -> Dict[str, DerivedStepImage]:
        """Resolve focus metadata for every step that has an image."""
        derived = derive_guide_step_images_with_focus(steps, step_images, tuning=self.tuning)

        self.stats.guides_annotated += 1
        self.stats.steps_annotated += len(derived)
        for entry in derived.values():
            self.stats.by_source[entry.focus_source.value] += 1

        logger.debug(f"Annotated {len(derived)}/{len(steps)} steps")
        return derived

    def plan_step(
        self,
        step: GuideStep,
        image: Optional[StepImage],
        surface: str = "card",
        viewport: Optional[Size] = None,
    ) -> Optional[StepRenderPlan]:
        """
        Resolve how one step image should be drawn.

        Args:
            step: The guide step
            image: Its (usually derived) step image
            surface: "card" (preview) or "detail" (full image)
            viewport: Live viewport size; defaults to the chosen variant size
                on cards and the image size on detail views

        Returns:
            StepRenderPlan, or None when the step has no image
        """
        if image is None:
            return None

        surface = MediaSurface(surface).value
        requested = "full" if surface == MediaSurface.DETAIL.value else "preview"
        variant = resolve_step_image_variant(image, surface=surface, requested_variant=requested)

        width, height = get_step_image_dimensions(image)
        if viewport is None:
            if surface == MediaSurface.CARD.value:
                viewport = Size(width=variant.width or width, height=variant.height or height)
            else:
                viewport = Size(width=width, height=height)

        focus_transform = compute_focus_transform_v1(
            Size(width=width, height=height),
            viewport,
            render_hints=image.render_hints,
            radar=image.radar,
        )
        fallback_reason = resolve_step_focus_fallback_reason(
            step,
            image.render_hints,
            has_focus_crop=focus_transform.has_focus_crop,
            zoom_scale=focus_transform.zoom_scale,
            tuning=self.tuning,
        )
        # Detail views always honour a computed crop; cards drop weak pointer focus.
        if surface == MediaSurface.DETAIL.value:
            apply_focus = focus_transform.has_focus_crop
        else:
            apply_focus = fallback_reason is None

        radar_percent = None
        if should_render_step_radar(step, image.radar, width, height):
            radar_percent = get_radar_percent(image.radar, width, height)

        cursor_track = resolve_renderable_cursor_track(image.cursor_track, width, height)
        mode = self.cursor_overlay_mode
        show_captured_cursor = mode == CursorOverlayMode.CAPTURED_CURSOR and cursor_track is not None
        radar_mode = mode == CursorOverlayMode.RADAR_DOT or (
            mode == CursorOverlayMode.CAPTURED_CURSOR and not show_captured_cursor
        )
        show_radar = (
            radar_mode
            and radar_percent is not None
            and (not apply_focus or focus_transform.radar_percent_in_crop is not None)
        )

        return StepRenderPlan(
            step_id=step.id,
            surface=surface,
            variant=variant,
            focus_transform=focus_transform,
            fallback_reason=fallback_reason,
            apply_focus=apply_focus,
            radar_percent=radar_percent,
            show_radar=show_radar,
            cursor_track=cursor_track,
            show_captured_cursor=show_captured_cursor,
        )

    def plan_guide(
        self,
        steps: Sequence[GuideStep],
        derived: Dict[str, DerivedStepImage],
        surface: str = "card",
        viewport: Optional[Size] = None,
    ) -> Dict[str, StepRenderPlan]:
        """Render plans for every step with a derived image, keyed by step id."""
        plans = {}
        for step in steps:
            entry = derived.get(step.id) if step.id else None
            if entry is None:
                continue
            plans[step.id] = self.plan_step(step, entry.image, surface=surface, viewport=viewport)
        return plans

    def get_stats(self) -> Dict[str, Any]:
        """Derivation outcome counts."""
        return {
            "guides_annotated": self.stats.guides_annotated,
            "steps_annotated": self.stats.steps_annotated,
            "records_skipped": self.stats.records_skipped,
            "by_source": dict(self.stats.by_source),
        }


# Singleton
_guide_focus_service: Optional[GuideFocusService] = None


def get_guide_focus_service(cursor_overlay_mode: Optional[str] = None) -> GuideFocusService:
    """
    Get the guide focus service (singleton).

    Reads from environment:
    - GUIDE_CURSOR_OVERLAY_MODE: "radar_dot" | "captured_cursor" | "none" (default: "radar_dot")
    - GUIDE_FOCUS_*: focus tuning overrides (see FocusTuning.from_env)
    """
    global _guide_focus_service

    if _guide_focus_service is None:
        _guide_focus_service = GuideFocusService(
            cursor_overlay_mode=cursor_overlay_mode or os.getenv("GUIDE_CURSOR_OVERLAY_MODE", "radar_dot"),
        )

    return _guide_focus_service


def reset_guide_focus_service():
    """Reset singleton (for testing)."""
    global _guide_focus_service
    _guide_focus_service = None
