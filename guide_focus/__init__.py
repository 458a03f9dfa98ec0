"""
Guide Focus - screenshot focus computation for recorded workflow guides.

Given captured screenshots of UI steps, resolves where each screenshot should
focus (manual override, backend hints, radar, a borrowed click from a sibling
step, or the image centre) and computes the crop, zoom and transform origin
for rendering, plus pan/zoom parameters for interactive canvases.

Usage:
    from guide_focus import Size, compute_focus_transform_v1, derive_guide_step_images_with_focus

    derived = derive_guide_step_images_with_focus(steps, step_images)
    image = derived["step_1"].image
    result = compute_focus_transform_v1(
        Size(image.width, image.height), Size(640, 360), image.render_hints, image.radar
    )
    print(result.crop_rect, result.zoom_scale)
"""

from guide_focus.canvas import (
    CanvasFocusTransform,
    CanvasSnapshot,
    canvas_snapshot_to_focus_override,
    clamp_scale,
    compute_canvas_focus_transform,
)
from guide_focus.config import FocusTuning, get_focus_tuning, reset_focus_tuning
from guide_focus.cursor import (
    CursorOverlayMode,
    parse_cursor_overlay_mode,
    resolve_cursor_overlay_mode,
    resolve_renderable_cursor_track,
    sample_renderable_cursor_track_point,
    resolve_cursor_track_pulse_kind,
)
from guide_focus.derivation import (
    DerivedStepImage,
    FocusSource,
    derive_guide_step_images_with_focus,
    read_step_screenshot_overrides_v1,
)
from guide_focus.media import (
    FocusFallbackReason,
    format_capture_timestamp,
    is_step_click_like,
    resolve_step_focus_fallback_reason,
    resolve_step_image_variant,
    should_render_step_radar,
)
from guide_focus.schema import (
    STEP_IMAGE_COORDINATE_SPACE,
    GuideStep,
    Point,
    RadarPoint,
    Rect,
    RenderHints,
    ScreenshotOverridesV1,
    StepImage,
)
from guide_focus.service import GuideFocusService, get_guide_focus_service, reset_guide_focus_service
from guide_focus.transform import (
    GUIDE_FOCUS_CONTEXT_MARGIN_FACTOR,
    FocusTransformResult,
    Size,
    compute_focus_transform_v1,
)

__version__ = "1.0.0"

__all__ = [
    # Focus transform
    "compute_focus_transform_v1",
    "FocusTransformResult",
    "Size",
    "GUIDE_FOCUS_CONTEXT_MARGIN_FACTOR",
    # Canvas adapter
    "clamp_scale",
    "compute_canvas_focus_transform",
    "canvas_snapshot_to_focus_override",
    "CanvasFocusTransform",
    "CanvasSnapshot",
    # Step focus derivation
    "derive_guide_step_images_with_focus",
    "read_step_screenshot_overrides_v1",
    "DerivedStepImage",
    "FocusSource",
    # Media helpers
    "is_step_click_like",
    "should_render_step_radar",
    "resolve_step_focus_fallback_reason",
    "resolve_step_image_variant",
    "format_capture_timestamp",
    "FocusFallbackReason",
    # Cursor helpers
    "CursorOverlayMode",
    "parse_cursor_overlay_mode",
    "resolve_cursor_overlay_mode",
    "resolve_renderable_cursor_track",
    "sample_renderable_cursor_track_point",
    "resolve_cursor_track_pulse_kind",
    # Schema
    "STEP_IMAGE_COORDINATE_SPACE",
    "GuideStep",
    "StepImage",
    "Point",
    "Rect",
    "RadarPoint",
    "RenderHints",
    "ScreenshotOverridesV1",
    # Configuration
    "FocusTuning",
    "get_focus_tuning",
    "reset_focus_tuning",
    # Service wrapper
    "GuideFocusService",
    "get_guide_focus_service",
    "reset_guide_focus_service",
]
