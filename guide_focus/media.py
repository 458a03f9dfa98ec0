"""
Guide media helpers: step classification, radar display rules and variant selection.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from guide_focus.config import FocusTuning, get_focus_tuning
from guide_focus.schema import (
    RadarPoint,
    RenderHints,
    StepImage,
    VariantDescriptor,
    is_finite_number,
    is_pixel_space,
    read_field,
    to_positive_finite,
)
from guide_focus.transform import RadarPercent

CLICK_STEP_KINDS = frozenset(
    [
        "click_target",
        "select_menu",
        "context_menu",
        "drag_drop",
        "multi_select",
        "table_action",
    ]
)

NON_CLICK_STEP_KINDS = frozenset(
    [
        "manual",
        "informational",
        "type_into_field",
        "copy_paste",
        "press_shortcut",
        "wait_for_window",
        "wait_for_element",
        "verify_state",
        "branch",
        "scroll",
        "file_dialog",
    ]
)

NON_CLICK_EVENT_TYPES = frozenset(["keypress", "input", "navigation"])

POINTER_HINT_SOURCES = frozenset(["radar", "click_event"])


class FocusFallbackReason(str, Enum):
    """Why a rendered step shows the full frame instead of its focus crop."""

    MISSING_RENDER_HINTS = "missing_render_hints"
    NO_FOCUS_CROP = "no_focus_crop"
    WEAK_POINTER_FOCUS_HINT = "weak_pointer_focus_hint"


class MediaSurface(str, Enum):
    CARD = "card"
    DETAIL = "detail"


@dataclass
class ResolvedVariant:
    """Download target chosen for a step image on a given surface."""

    selected_variant: Optional[str]  # "preview", "full", "legacy" or None
    download_url: Optional[str]
    content_type: Optional[str]
    width: Optional[float]
    height: Optional[float]


def _normalize_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip().lower()
    return ""


def _expected_event_type(step: Any) -> str:
    expected_event = read_field(step, "expected_event")
    if not isinstance(expected_event, dict):
        return ""
    return _normalize_text(expected_event.get("type"))


def is_step_click_like(step: Any) -> bool:
    """
    Classify a step as a UI click/selection.

    expected_event.type decides first; otherwise the step kind is looked up.
    Unknown kinds are treated as not click-like.
    """
    expected_type = _expected_event_type(step)
    if expected_type == "click":
        return True
    if expected_type in NON_CLICK_EVENT_TYPES:
        return False

    kind = _normalize_text(read_field(step, "kind"))
    if kind in CLICK_STEP_KINDS:
        return True
    if kind in NON_CLICK_STEP_KINDS:
        return False
    return False


def is_pointer_hint_source(hints: RenderHints) -> bool:
    return _normalize_text(hints.source) in POINTER_HINT_SOURCES


def is_point_in_image(point: Any, width: float, height: float) -> bool:
    """Tagged, finite and within [0, width] x [0, height]."""
    if not is_pixel_space(point):
        return False
    if not is_finite_number(point.x) or not is_finite_number(point.y):
        return False
    return 0 <= point.x <= width and 0 <= point.y <= height


def should_render_step_radar(
    step: Any,
    radar: Optional[RadarPoint],
    width: Optional[float],
    height: Optional[float],
) -> bool:
    """Whether a radar dot should be drawn for this step."""
    if not is_step_click_like(step):
        return False

    width = to_positive_finite(width)
    height = to_positive_finite(height)
    if width is None or height is None:
        return False
    if not is_point_in_image(radar, width, height):
        return False

    if _normalize_text(radar.reason_code).startswith("default_center"):
        return False

    confidence = radar.confidence
    if confidence is not None:
        if not is_finite_number(confidence) or confidence <= 0.05:
            return False

    return True


def get_radar_percent(
    radar: Optional[RadarPoint],
    width: Optional[float],
    height: Optional[float],
) -> Optional[RadarPercent]:
    """Radar position as percentages of the full image."""
    if not is_pixel_space(radar):
        return None
    if not is_finite_number(radar.x) or not is_finite_number(radar.y):
        return None
    width = to_positive_finite(width)
    height = to_positive_finite(height)
    if width is None or height is None:
        return None

    left = min(max(radar.x / width * 100, 0), 100)
    top = min(max(radar.y / height * 100, 0), 100)
    return RadarPercent(left=left, top=top)


def resolve_step_focus_fallback_reason(
    step: Any,
    render_hints: Optional[RenderHints],
    has_focus_crop: bool,
    zoom_scale: float,
    tuning: Optional[FocusTuning] = None,
) -> Optional[FocusFallbackReason]:
    """
    Decide whether a computed focus crop should actually be applied.

    Returns None when the focus should be applied, otherwise the reason the
    full frame is shown instead.
    """
    tuning = tuning or get_focus_tuning()

    if render_hints is None:
        return FocusFallbackReason.MISSING_RENDER_HINTS
    if not has_focus_crop:
        return FocusFallbackReason.NO_FOCUS_CROP

    if not is_step_click_like(step):
        return None

    if not is_pointer_hint_source(render_hints):
        return FocusFallbackReason.WEAK_POINTER_FOCUS_HINT

    confidence = render_hints.confidence
    if is_finite_number(confidence) and confidence >= tuning.strong_hint_confidence:
        return None
    if zoom_scale >= tuning.strong_hint_zoom:
        return None

    return FocusFallbackReason.WEAK_POINTER_FOCUS_HINT


def get_step_image_dimensions(image: StepImage) -> Tuple[Optional[float], Optional[float]]:
    """Image size from the record itself, then the full variant, then the preview."""
    variants = image.variants
    full = variants.full if variants else None
    preview = variants.preview if variants else None

    width = (
        to_positive_finite(image.width)
        or to_positive_finite(full.width if full else None)
        or to_positive_finite(preview.width if preview else None)
    )
    height = (
        to_positive_finite(image.height)
        or to_positive_finite(full.height if full else None)
        or to_positive_finite(preview.height if preview else None)
    )
    return width, height


def _variant_order(surface: str, requested_variant: str):
    if requested_variant == "preview":
        return ["preview", "full"]
    if requested_variant == "full":
        return ["full", "preview"]
    if surface == MediaSurface.DETAIL.value:
        return ["full", "preview"]
    return ["preview", "full"]


def _normalize_url(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def resolve_step_image_variant(
    image: StepImage,
    surface: str = "card",
    requested_variant: str = "auto",
) -> ResolvedVariant:
    """
    Pick which stored rendition of a step image to download.

    Cards prefer the preview, detail views prefer the full image; an explicit
    request wins. Without any variant URL the legacy download_url is used.
    """
    order = _variant_order(surface, requested_variant)

    fallback: Optional[VariantDescriptor] = None
    for variant in order:
        descriptor = getattr(image.variants, variant, None) if image.variants else None
        if descriptor is None:
            continue
        if fallback is None:
            fallback = descriptor

        download_url = _normalize_url(descriptor.download_url)
        if download_url is None:
            continue

        return ResolvedVariant(
            selected_variant=variant,
            download_url=download_url,
            content_type=_normalize_url(descriptor.content_type) or _normalize_url(image.content_type),
            width=to_positive_finite(descriptor.width) or to_positive_finite(image.width),
            height=to_positive_finite(descriptor.height) or to_positive_finite(image.height),
        )

    content_type = _normalize_url(fallback.content_type if fallback else None) or _normalize_url(
        image.content_type
    )
    width = to_positive_finite(fallback.width if fallback else None) or to_positive_finite(image.width)
    height = to_positive_finite(fallback.height if fallback else None) or to_positive_finite(image.height)

    legacy_url = _normalize_url(image.download_url)
    return ResolvedVariant(
        selected_variant="legacy" if legacy_url else None,
        download_url=legacy_url,
        content_type=content_type,
        width=width,
        height=height,
    )


def format_capture_timestamp(seconds: Optional[float]) -> Optional[str]:
    """Format seconds into the recording as m:ss."""
    if not is_finite_number(seconds) or seconds < 0:
        return None

    whole_seconds = int(seconds + 0.5)
    minutes, remaining = divmod(whole_seconds, 60)
    return f"{minutes}:{remaining:02d}"
