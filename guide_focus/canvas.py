"""
Canvas adapter: pan/zoom parameters for an interactive step image viewer.

A FocusTransformResult describes the focus as percentages of the captured
image. An interactive canvas instead needs a scale and pixel offsets for the
image as rendered on screen, which may differ from the capture resolution.
"""

from dataclasses import dataclass
from typing import Optional

from guide_focus.schema import FocusOverride, UnitPoint, is_finite_number
from guide_focus.transform import GUIDE_FOCUS_CONTEXT_MARGIN_FACTOR, FocusTransformResult

MAX_SAVED_ZOOM_SCALE = 4
CONTEXT_MARGIN_COMPENSATION = 1 + GUIDE_FOCUS_CONTEXT_MARGIN_FACTOR * 2


@dataclass
class CanvasFocusTransform:
    scale: float
    position_x: float
    position_y: float


@dataclass
class CanvasSnapshot:
    """Current state of a pan/zoom canvas, as reported by the viewer."""

    viewport_width: float
    viewport_height: float
    rendered_image_width: float
    rendered_image_height: float
    scale: float
    position_x: float
    position_y: float


def clamp_scale(value: float, min_scale: float, max_scale: float) -> float:
    """Clamp a zoom scale to [min_scale, max_scale]."""
    return min(max(value, min_scale), max_scale)


def compute_canvas_focus_transform(
    *,
    focus_transform: FocusTransformResult,
    viewport_width: float,
    viewport_height: float,
    image_width: float,
    image_height: float,
    min_scale: float,
    max_scale: float,
) -> CanvasFocusTransform:
    """
    Pan so the focus point sits at the viewport centre at the clamped scale.

    image_width/image_height are the rendered (on-screen) image dimensions.
    """
    scale = clamp_scale(focus_transform.zoom_scale, min_scale, max_scale)
    focus_x = focus_transform.transform_origin_percent.x / 100 * image_width
    focus_y = focus_transform.transform_origin_percent.y / 100 * image_height
    position_x = viewport_width / 2 - focus_x * scale
    position_y = viewport_height / 2 - focus_y * scale
    return CanvasFocusTransform(scale=scale, position_x=position_x, position_y=position_y)


def _positive(value) -> bool:
    return is_finite_number(value) and value > 0


def _clamp_unit(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def canvas_snapshot_to_focus_override(
    snapshot: CanvasSnapshot,
    max_zoom_scale: float = MAX_SAVED_ZOOM_SCALE,
) -> Optional[FocusOverride]:
    """
    Convert an edited canvas state back into a unit-square focus override.

    compute_focus_transform_v1 widens the crop by the context margin, which
    lowers the effective zoom. The saved zoom is scaled up by the same factor
    so that reopening and saving without edits does not drift outward.
    """
    if not _positive(snapshot.viewport_width) or not _positive(snapshot.viewport_height):
        return None
    if not _positive(snapshot.rendered_image_width) or not _positive(snapshot.rendered_image_height):
        return None
    if not _positive(snapshot.scale):
        return None
    if not is_finite_number(snapshot.position_x) or not is_finite_number(snapshot.position_y):
        return None

    focus_x = (snapshot.viewport_width / 2 - snapshot.position_x) / snapshot.scale
    focus_y = (snapshot.viewport_height / 2 - snapshot.position_y) / snapshot.scale
    normalized_scale = max(1, snapshot.scale)
    if normalized_scale > 1.001:
        compensated_scale = normalized_scale * CONTEXT_MARGIN_COMPENSATION
    else:
        compensated_scale = normalized_scale

    return FocusOverride(
        center_unit=UnitPoint(
            x=_clamp_unit(focus_x / snapshot.rendered_image_width),
            y=_clamp_unit(focus_y / snapshot.rendered_image_height),
        ),
        zoom_scale=min(max_zoom_scale, compensated_scale),
    )
