"""
Step Focus Derivation: resolve which focus signal each guide step uses.

Every step that has a screenshot ends in exactly one outcome, tried in order:

1. manual_override       - author-set focus/cursor in screenshot_overrides
2. backend_render_hints  - strong render hints already on the step image
3. radar                 - the step image's own valid radar point
4. clamped_click         - borrowed from the nearest click-like sibling step
5. center_fallback       - image centre at a mild zoom
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from guide_focus.config import FocusTuning, get_focus_tuning
from guide_focus.media import (
    get_step_image_dimensions,
    is_point_in_image,
    is_pointer_hint_source,
    is_step_click_like,
)
from guide_focus.schema import (
    STEP_IMAGE_COORDINATE_SPACE,
    CursorOverride,
    FocusOverride,
    Point,
    RadarPoint,
    RenderHints,
    ScreenshotOverridesV1,
    StepImage,
    UnitPoint,
    is_finite_number,
    read_field,
    to_positive_finite,
)

logger = logging.getLogger(__name__)

FOCUS_HINTS_ALGORITHM = "focus_hints_v1"
MANUAL_OVERRIDE_REASON = "manual_override"


class FocusSource(str, Enum):
    """How a step's focus was resolved."""

    MANUAL_OVERRIDE = "manual_override"
    BACKEND_RENDER_HINTS = "backend_render_hints"
    RADAR = "radar"
    CLAMPED_CLICK = "clamped_click"
    CENTER_FALLBACK = "center_fallback"


@dataclass
class DerivedStepImage:
    """Step image annotated with resolved render hints and radar."""

    image: StepImage
    focus_source: FocusSource
    clamped_from_step_id: Optional[str] = None


@dataclass
class _ClickCandidate:
    step_id: str
    index: int
    capture_ts: Optional[float]
    center: Point
    confidence: float


# ==============================================================================
# SCREENSHOT OVERRIDES
# ==============================================================================


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _to_unit_point(value: Any) -> Optional[UnitPoint]:
    if not isinstance(value, dict):
        return None
    x = value.get("x")
    y = value.get("y")
    if not is_finite_number(x) or not is_finite_number(y):
        return None
    return UnitPoint(x=_clamp_unit(x), y=_clamp_unit(y))


def read_step_screenshot_overrides_v1(step: Any) -> Optional[ScreenshotOverridesV1]:
    """
    Read author overrides from a step, discarding anything malformed.

    Focus needs both center_unit and a positive zoom_scale; cursor needs
    point_unit. Returns None when neither survives.
    """
    raw = read_field(step, "screenshot_overrides")
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        return None

    focus = None
    focus_raw = raw.get("focus")
    if isinstance(focus_raw, dict):
        center_unit = _to_unit_point(focus_raw.get("center_unit"))
        zoom_scale = to_positive_finite(focus_raw.get("zoom_scale"))
        if center_unit is not None and zoom_scale is not None:
            focus = FocusOverride(center_unit=center_unit, zoom_scale=zoom_scale)

    cursor = None
    cursor_raw = raw.get("cursor")
    if isinstance(cursor_raw, dict):
        point_unit = _to_unit_point(cursor_raw.get("point_unit"))
        if point_unit is not None:
            cursor = CursorOverride(point_unit=point_unit)

    if focus is None and cursor is None:
        logger.debug(f"Discarding unusable screenshot_overrides on step {read_field(step, 'id')}")
        return None
    return ScreenshotOverridesV1(focus=focus, cursor=cursor)


# ==============================================================================
# SYNTHESIZED SIGNALS
# ==============================================================================


def _pixel_point(x: float, y: float) -> Point:
    return Point(x=x, y=y, coordinate_space=STEP_IMAGE_COORDINATE_SPACE)


def _manual_cursor_to_radar(point_unit: UnitPoint, width: float, height: float) -> RadarPoint:
    return RadarPoint(
        x=_clamp_unit(point_unit.x) * width,
        y=_clamp_unit(point_unit.y) * height,
        coordinate_space=STEP_IMAGE_COORDINATE_SPACE,
        confidence=1,
        reason_code=MANUAL_OVERRIDE_REASON,
    )


def _manual_focus_to_render_hints(focus: FocusOverride, width: float, height: float) -> RenderHints:
    return RenderHints(
        algorithm=FOCUS_HINTS_ALGORITHM,
        source="click_event",
        confidence=1,
        focus_center=_pixel_point(
            _clamp_unit(focus.center_unit.x) * width,
            _clamp_unit(focus.center_unit.y) * height,
        ),
        recommended_zoom_scale=max(1, focus.zoom_scale),
    )


def _radar_to_render_hints(radar: RadarPoint, zoom_scale: float, tuning: FocusTuning) -> RenderHints:
    confidence = radar.confidence if is_finite_number(radar.confidence) else tuning.default_radar_confidence
    return RenderHints(
        algorithm=FOCUS_HINTS_ALGORITHM,
        source="radar",
        confidence=confidence,
        focus_center=_pixel_point(radar.x, radar.y),
        recommended_zoom_scale=max(1, zoom_scale),
    )


def _center_render_hints(
    width: float, height: float, zoom_scale: float, click_like: bool, tuning: FocusTuning
) -> RenderHints:
    return RenderHints(
        algorithm=FOCUS_HINTS_ALGORITHM,
        source="click_event" if click_like else "center",
        confidence=tuning.center_confidence,
        focus_center=_pixel_point(width / 2, height / 2),
        recommended_zoom_scale=max(1, zoom_scale),
    )


def is_strong_pointer_hints(step: Any, hints: RenderHints, tuning: Optional[FocusTuning] = None) -> bool:
    """
    Whether backend render hints are trustworthy enough to use as-is.

    Click-like steps need a pointer source plus either high confidence or a
    real zoom. Other steps only need some zoom or an explicit safe crop.
    """
    tuning = tuning or get_focus_tuning()
    zoom_scale = to_positive_finite(hints.recommended_zoom_scale) or 1

    if not is_step_click_like(step):
        return zoom_scale > tuning.non_click_hint_zoom or hints.safe_crop_rect is not None

    if not is_pointer_hint_source(hints):
        return False

    confidence = hints.confidence
    if is_finite_number(confidence) and confidence >= tuning.strong_hint_confidence:
        return True
    return zoom_scale >= tuning.strong_hint_zoom


# ==============================================================================
# CLAMPED CLICK SEARCH
# ==============================================================================


def _finite_or_none(value: Any) -> Optional[float]:
    return value if is_finite_number(value) else None


def _pick_nearest_candidate(
    candidates: List[_ClickCandidate],
    current_index: int,
    current_capture_ts: Optional[float],
) -> Optional[_ClickCandidate]:
    """Nearest by capture time when both sides have one, else by step index."""
    if not candidates:
        return None

    if current_capture_ts is not None:
        timed = [c for c in candidates if c.capture_ts is not None]
        if timed:
            return min(
                timed,
                key=lambda c: (abs(c.capture_ts - current_capture_ts), c.index, c.step_id),
            )

    return min(
        candidates,
        key=lambda c: (abs(c.index - current_index), c.index, c.step_id),
    )


def _collect_click_candidates(
    steps: Sequence[Any],
    image_map: Dict[str, StepImage],
    tuning: FocusTuning,
) -> List[_ClickCandidate]:
    candidates = []
    for index, step in enumerate(steps):
        step_id = read_field(step, "id")
        if not step_id or not is_step_click_like(step):
            continue

        image = image_map.get(step_id)
        if image is None:
            continue
        width, height = get_step_image_dimensions(image)
        if width is None or height is None:
            continue

        overrides = read_step_screenshot_overrides_v1(step)
        manual_cursor = overrides.cursor.point_unit if overrides and overrides.cursor else None
        radar = _manual_cursor_to_radar(manual_cursor, width, height) if manual_cursor else image.radar
        if not is_point_in_image(radar, width, height):
            continue

        if is_finite_number(radar.confidence):
            confidence = radar.confidence
        elif manual_cursor is not None:
            confidence = 1
        else:
            confidence = tuning.default_radar_confidence

        candidates.append(
            _ClickCandidate(
                step_id=step_id,
                index=index,
                capture_ts=_finite_or_none(image.capture_t_s),
                center=_pixel_point(radar.x, radar.y),
                confidence=confidence,
            )
        )
    return candidates


# ==============================================================================
# DERIVATION
# ==============================================================================


def _annotated(image: StepImage, radar: Optional[RadarPoint], render_hints: Optional[RenderHints]) -> StepImage:
    """New image record carrying the resolved radar and hints; nothing is shared with the input."""
    update = {
        "radar": radar.model_copy() if radar is not None else None,
        "render_hints": render_hints.model_copy(deep=True) if render_hints is not None else None,
    }
    return image.model_copy(update=update, deep=True)


def derive_guide_step_images_with_focus(
    steps: Sequence[Any],
    step_images: Sequence[StepImage],
    tuning: Optional[FocusTuning] = None,
) -> Dict[str, DerivedStepImage]:
    """
    Annotate every step's image with resolved focus metadata.

    Args:
        steps: Ordered guide steps (GuideStep models or mappings)
        step_images: Step images for the same guide version
        tuning: Threshold overrides (default: process tuning)

    Returns:
        Dict of step id -> DerivedStepImage. Steps without an image are
        absent. Input images are never mutated.
    """
    tuning = tuning or get_focus_tuning()

    image_map: Dict[str, StepImage] = {}
    for image in step_images:
        if image is not None and image.step_id:
            image_map[image.step_id] = image

    click_candidates = _collect_click_candidates(steps, image_map, tuning)

    derived: Dict[str, DerivedStepImage] = {}
    for index, step in enumerate(steps):
        step_id = read_field(step, "id")
        if not step_id:
            continue
        image = image_map.get(step_id)
        if image is None:
            continue

        width, height = get_step_image_dimensions(image)
        if width is None or height is None:
            derived[step_id] = DerivedStepImage(
                image=image.model_copy(deep=True),
                focus_source=FocusSource.BACKEND_RENDER_HINTS,
            )
            continue

        click_like = is_step_click_like(step)
        overrides = read_step_screenshot_overrides_v1(step)
        manual_focus = overrides.focus if overrides else None
        manual_cursor = overrides.cursor.point_unit if overrides and overrides.cursor else None

        manual_cursor_radar = _manual_cursor_to_radar(manual_cursor, width, height) if manual_cursor else None
        effective_radar = manual_cursor_radar if manual_cursor_radar is not None else image.radar

        if manual_focus is not None:
            derived[step_id] = DerivedStepImage(
                image=_annotated(image, effective_radar, _manual_focus_to_render_hints(manual_focus, width, height)),
                focus_source=FocusSource.MANUAL_OVERRIDE,
            )
            continue

        backend_hints = image.render_hints
        if backend_hints is not None and is_strong_pointer_hints(step, backend_hints, tuning):
            derived[step_id] = DerivedStepImage(
                image=_annotated(image, effective_radar, backend_hints),
                focus_source=FocusSource.BACKEND_RENDER_HINTS,
            )
            continue

        pointer_zoom = tuning.click_zoom if click_like else tuning.clamped_zoom

        if is_point_in_image(effective_radar, width, height):
            derived[step_id] = DerivedStepImage(
                image=_annotated(image, effective_radar, _radar_to_render_hints(effective_radar, pointer_zoom, tuning)),
                focus_source=FocusSource.RADAR,
            )
            continue

        candidate = _pick_nearest_candidate(
            [c for c in click_candidates if c.step_id != step_id],
            current_index=index,
            current_capture_ts=_finite_or_none(image.capture_t_s),
        )
        if candidate is not None:
            confidence = candidate.confidence * tuning.clamp_confidence_decay
            hints = RenderHints(
                algorithm=FOCUS_HINTS_ALGORITHM,
                source="click_event",
                confidence=max(tuning.clamp_confidence_floor, min(1, confidence)),
                focus_center=candidate.center.model_copy(),
                recommended_zoom_scale=pointer_zoom,
            )
            logger.debug(f"Step {step_id}: borrowing click focus from {candidate.step_id}")
            derived[step_id] = DerivedStepImage(
                image=_annotated(image, effective_radar, hints),
                focus_source=FocusSource.CLAMPED_CLICK,
                clamped_from_step_id=candidate.step_id,
            )
            continue

        center_zoom = max(tuning.center_zoom, tuning.strong_hint_zoom) if click_like else tuning.center_zoom
        derived[step_id] = DerivedStepImage(
            image=_annotated(image, effective_radar, _center_render_hints(width, height, center_zoom, click_like, tuning)),
            focus_source=FocusSource.CENTER_FALLBACK,
        )

    return derived
