"""
Focus Transform: crop, zoom and transform origin for one step image.

Given the captured image size, the viewport it will be shown in, optional
render hints and an optional radar point, compute a single crop rectangle in
image pixels, the implied zoom, a percentage transform origin, and where the
radar dot lands inside the crop.

Pipeline (hints present):
    base rect (safe_crop_rect, else focus_center + zoom)
    -> clamp -> match viewport aspect -> context margin -> integer bounds
"""

import math
from dataclasses import dataclass
from typing import Optional

from guide_focus.schema import (
    RadarPoint,
    RenderHints,
    is_finite_number,
    is_pixel_space,
    to_positive_finite,
)

DEFAULT_CONTEXT_MARGIN_FACTOR = 0.04

# Editor tooling round-trips a saved zoom through the context margin, so this
# value is part of the public contract.
GUIDE_FOCUS_CONTEXT_MARGIN_FACTOR = DEFAULT_CONTEXT_MARGIN_FACTOR


@dataclass
class Size:
    """Width/height pair; either side may be unknown."""

    width: Optional[float] = None
    height: Optional[float] = None


@dataclass
class FocusRect:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self):
        return self.x + self.width / 2, self.y + self.height / 2


@dataclass
class OriginPercent:
    x: float
    y: float


@dataclass
class RadarPercent:
    left: float
    top: float


@dataclass
class FocusTransformResult:
    """Output of compute_focus_transform_v1."""

    crop_rect: FocusRect
    zoom_scale: float
    transform_origin_percent: OriginPercent
    radar_percent_in_crop: Optional[RadarPercent]
    has_focus_crop: bool


def _clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def _almost_equal(a: float, b: float, epsilon: float = 0.001) -> bool:
    return abs(a - b) <= epsilon


def _rect_around(cx: float, cy: float, width: float, height: float) -> FocusRect:
    return FocusRect(x=cx - width / 2, y=cy - height / 2, width=width, height=height)


def clamp_rect_to_image(rect: FocusRect, image_width: float, image_height: float) -> FocusRect:
    """Shrink and shift rect so it lies fully inside the image."""
    width = _clamp(rect.width, 1, image_width)
    height = _clamp(rect.height, 1, image_height)
    x = _clamp(rect.x, 0, max(0, image_width - width))
    y = _clamp(rect.y, 0, max(0, image_height - height))
    return FocusRect(x=x, y=y, width=width, height=height)


def _round_crop_rect(rect: FocusRect, image_width: float, image_height: float) -> FocusRect:
    x = _clamp(math.floor(rect.x), 0, max(0, image_width - 1))
    y = _clamp(math.floor(rect.y), 0, max(0, image_height - 1))
    width = _clamp(math.ceil(rect.width), 1, image_width - x)
    height = _clamp(math.ceil(rect.height), 1, image_height - y)
    return FocusRect(x=x, y=y, width=width, height=height)


def _safe_rect_from_hints(hints: RenderHints) -> Optional[FocusRect]:
    safe = hints.safe_crop_rect
    if not is_pixel_space(safe):
        return None
    if to_positive_finite(safe.width) is None or to_positive_finite(safe.height) is None:
        return None
    if not is_finite_number(safe.x) or not is_finite_number(safe.y):
        return None
    return FocusRect(x=safe.x, y=safe.y, width=safe.width, height=safe.height)


def _derived_rect_from_center_and_zoom(
    hints: RenderHints, image_width: float, image_height: float
) -> Optional[FocusRect]:
    center = hints.focus_center
    zoom = to_positive_finite(hints.recommended_zoom_scale)
    if not is_pixel_space(center):
        return None
    if zoom is None or zoom <= 1:
        return None
    if not is_finite_number(center.x) or not is_finite_number(center.y):
        return None
    return _rect_around(center.x, center.y, image_width / zoom, image_height / zoom)


def _adjust_rect_to_viewport_aspect(
    rect: FocusRect,
    viewport_width: float,
    viewport_height: float,
    image_width: float,
    image_height: float,
) -> FocusRect:
    """Grow the short side of rect around its centre to match the viewport aspect."""
    if to_positive_finite(viewport_width) is None or to_positive_finite(viewport_height) is None:
        return rect
    target_aspect = viewport_width / viewport_height
    if to_positive_finite(target_aspect) is None:
        return rect

    cx, cy = rect.center
    width = rect.width
    height = rect.height
    rect_aspect = rect.width / rect.height

    if rect_aspect > target_aspect:
        height = width / target_aspect
    elif rect_aspect < target_aspect:
        width = height * target_aspect

    if width > image_width:
        width = image_width
        height = width / target_aspect
    if height > image_height:
        height = image_height
        width = height * target_aspect

    return clamp_rect_to_image(_rect_around(cx, cy, width, height), image_width, image_height)


def _apply_context_margin(
    rect: FocusRect,
    image_width: float,
    image_height: float,
    margin_factor: float = DEFAULT_CONTEXT_MARGIN_FACTOR,
) -> FocusRect:
    if to_positive_finite(margin_factor) is None:
        return rect
    cx, cy = rect.center
    width = rect.width * (1 + margin_factor * 2)
    height = rect.height * (1 + margin_factor * 2)
    return clamp_rect_to_image(_rect_around(cx, cy, width, height), image_width, image_height)


def _radar_percent_in_crop(radar: Optional[RadarPoint], crop: FocusRect) -> Optional[RadarPercent]:
    if not is_pixel_space(radar):
        return None
    if not is_finite_number(radar.x) or not is_finite_number(radar.y):
        return None

    x = (radar.x - crop.x) / crop.width
    y = (radar.y - crop.y) / crop.height
    if x < 0 or x > 1 or y < 0 or y > 1:
        return None

    return RadarPercent(left=x * 100, top=y * 100)


def _is_focused_rect(rect: FocusRect, image_width: float, image_height: float) -> bool:
    return not (
        _almost_equal(rect.x, 0)
        and _almost_equal(rect.y, 0)
        and _almost_equal(rect.width, image_width)
        and _almost_equal(rect.height, image_height)
    )


def _identity_result() -> FocusTransformResult:
    return FocusTransformResult(
        crop_rect=FocusRect(x=0, y=0, width=1, height=1),
        zoom_scale=1,
        transform_origin_percent=OriginPercent(x=50, y=50),
        radar_percent_in_crop=None,
        has_focus_crop=False,
    )


def compute_focus_transform_v1(
    image: Size,
    viewport: Size,
    render_hints: Optional[RenderHints] = None,
    radar: Optional[RadarPoint] = None,
) -> FocusTransformResult:
    """
    Compute the focus crop for one step image.

    Args:
        image: Captured image size in pixels
        viewport: Size of the surface the crop will fill (unknown -> image size)
        render_hints: Optional server or derived hints
        radar: Optional click point to place within the crop

    Returns:
        FocusTransformResult. Degenerate image sizes yield the identity result.
    """
    image_width = to_positive_finite(image.width)
    image_height = to_positive_finite(image.height)
    if image_width is None or image_height is None:
        return _identity_result()

    crop = FocusRect(x=0, y=0, width=image_width, height=image_height)
    if render_hints is not None:
        base = _safe_rect_from_hints(render_hints) or _derived_rect_from_center_and_zoom(
            render_hints, image_width, image_height
        )
        if base is not None:
            crop = clamp_rect_to_image(base, image_width, image_height)
            crop = _adjust_rect_to_viewport_aspect(
                crop,
                to_positive_finite(viewport.width) or image_width,
                to_positive_finite(viewport.height) or image_height,
                image_width,
                image_height,
            )
            crop = _apply_context_margin(crop, image_width, image_height)
            crop = clamp_rect_to_image(crop, image_width, image_height)
            crop = _round_crop_rect(crop, image_width, image_height)

    origin_point = render_hints.focus_center if render_hints is not None else None
    cx, cy = crop.center
    if is_pixel_space(origin_point) and is_finite_number(origin_point.x):
        origin_x = _clamp(origin_point.x / image_width * 100, 0, 100)
    else:
        origin_x = _clamp(cx / image_width * 100, 0, 100)
    if is_pixel_space(origin_point) and is_finite_number(origin_point.y):
        origin_y = _clamp(origin_point.y / image_height * 100, 0, 100)
    else:
        origin_y = _clamp(cy / image_height * 100, 0, 100)

    zoom_scale = max(1, image_width / max(1, crop.width))

    return FocusTransformResult(
        crop_rect=crop,
        zoom_scale=zoom_scale,
        transform_origin_percent=OriginPercent(x=origin_x, y=origin_y),
        radar_percent_in_crop=_radar_percent_in_crop(radar, crop),
        has_focus_crop=_is_focused_rect(crop, image_width, image_height),
    )
