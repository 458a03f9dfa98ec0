"""
Guide Media Schema: Pydantic models for step images, radar points and render hints.

These mirror the JSON payloads exchanged with the guide backend. Field names
and the coordinate-space literal must not change.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field, StrictFloat, ValidationError, validator

logger = logging.getLogger(__name__)

STEP_IMAGE_COORDINATE_SPACE = "step_image_pixels_v1"


def is_finite_number(value: Any) -> bool:
    """True for real ints/floats that are not NaN or infinite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def to_positive_finite(value: Any) -> Optional[float]:
    """Return value if it is a finite number > 0, else None."""
    if is_finite_number(value) and value > 0:
        return value
    return None


def is_pixel_space(obj: Any) -> bool:
    """Check the coordinate-space tag on a point or rect."""
    if obj is None:
        return False
    return getattr(obj, "coordinate_space", None) == STEP_IMAGE_COORDINATE_SPACE


def read_field(obj: Any, name: str) -> Any:
    """Read a field from a model or a plain mapping."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _parse_or_none(model: Type[BaseModel], value: Any, label: str) -> Any:
    """Parse a nested payload, dropping it to None when malformed."""
    if value is None or isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as e:
        logger.debug(f"Dropping malformed {label}: {e.error_count()} error(s)")
        return None


def _number_or_none(value: Any) -> Any:
    """Optional numeric fields keep only real finite numbers."""
    return value if is_finite_number(value) else None


class Point(BaseModel):
    """Pixel-space location within one captured step image."""

    x: StrictFloat
    y: StrictFloat
    coordinate_space: Optional[str] = None


class Rect(BaseModel):
    """Pixel-space rectangle within one captured step image."""

    x: StrictFloat
    y: StrictFloat
    width: StrictFloat
    height: StrictFloat
    coordinate_space: Optional[str] = None


class RadarPoint(Point):
    """Detected or authored click location for a step."""

    confidence: Optional[float] = None
    reason_code: Optional[str] = None

    @validator("confidence", pre=True)
    def numeric_confidence(cls, v):
        return _number_or_none(v)


class RenderHints(BaseModel):
    """Where to centre and how far to zoom a step image."""

    algorithm: Optional[str] = None
    source: Optional[str] = None  # "radar", "click_event", "element_frame", "layout_anchor", "center"
    confidence: Optional[float] = None
    focus_center: Optional[Point] = None
    safe_crop_rect: Optional[Rect] = None
    recommended_zoom_scale: Optional[float] = None
    recommended_focus_radius_px: Optional[float] = None

    @validator("confidence", "recommended_zoom_scale", "recommended_focus_radius_px", pre=True)
    def numeric_fields(cls, v):
        return _number_or_none(v)

    @validator("focus_center", pre=True)
    def lenient_focus_center(cls, v):
        return _parse_or_none(Point, v, "focus_center")

    @validator("safe_crop_rect", pre=True)
    def lenient_safe_crop_rect(cls, v):
        return _parse_or_none(Rect, v, "safe_crop_rect")


class CursorTrackPoint(BaseModel):
    """
    One recorded pointer sample. Values are kept raw; unusable samples are
    skipped when the track is rendered.
    """

    t_ms: Optional[Any] = None
    x: Optional[Any] = None
    y: Optional[Any] = None
    kind: Optional[Any] = None  # "move", "mouse_down", "mouse_up"


class CursorTrack(BaseModel):
    """Recorded pointer movement around the moment a screenshot was captured."""

    coordinate_space: Optional[str] = None
    duration_ms: Optional[float] = None
    sample_rate_hz: Optional[float] = None
    points: List[CursorTrackPoint] = Field(default_factory=list)

    @validator("duration_ms", "sample_rate_hz", pre=True)
    def numeric_fields(cls, v):
        return _number_or_none(v)

    @validator("points", pre=True)
    def lenient_points(cls, v):
        if not isinstance(v, list):
            return []
        return [p for p in v if isinstance(p, (dict, CursorTrackPoint))]


class VariantDescriptor(BaseModel):
    key: Optional[str] = None
    download_url: Optional[str] = None
    content_type: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @validator("width", "height", pre=True)
    def numeric_size(cls, v):
        return _number_or_none(v)


class StepImageVariants(BaseModel):
    preview: Optional[VariantDescriptor] = None
    full: Optional[VariantDescriptor] = None


class StepImage(BaseModel):
    """One screenshot tied to a guide step."""

    step_id: str
    key: Optional[str] = None
    download_url: Optional[str] = None
    content_type: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    capture_t_s: Optional[float] = None
    capture_t_source: Optional[str] = None
    radar: Optional[RadarPoint] = None
    cursor_track: Optional[CursorTrack] = None
    render_hints: Optional[RenderHints] = None
    variants: Optional[StepImageVariants] = None

    @validator("width", "height", "capture_t_s", pre=True)
    def numeric_fields(cls, v):
        return _number_or_none(v)

    @validator("radar", pre=True)
    def lenient_radar(cls, v):
        return _parse_or_none(RadarPoint, v, "radar")

    @validator("render_hints", pre=True)
    def lenient_render_hints(cls, v):
        return _parse_or_none(RenderHints, v, "render_hints")

    @validator("cursor_track", pre=True)
    def lenient_cursor_track(cls, v):
        return _parse_or_none(CursorTrack, v, "cursor_track")

    @validator("variants", pre=True)
    def lenient_variants(cls, v):
        return _parse_or_none(StepImageVariants, v, "variants")

    class Config:
        extra = "allow"
        json_schema_extra = {
            "example": {
                "step_id": "step_1",
                "download_url": "https://media.example/step_1.jpg",
                "content_type": "image/jpeg",
                "width": 1920,
                "height": 1080,
                "capture_t_s": 12.4,
                "radar": {
                    "x": 640,
                    "y": 360,
                    "coordinate_space": STEP_IMAGE_COORDINATE_SPACE,
                    "confidence": 0.92,
                },
                "variants": {
                    "preview": {"download_url": "https://media.example/step_1_preview.jpg", "width": 768, "height": 432},
                    "full": {"download_url": "https://media.example/step_1_full.jpg", "width": 1920, "height": 1080},
                },
            }
        }


class GuideStep(BaseModel):
    """
    Step definition from a guide spec.

    expected_event and screenshot_overrides are kept raw; the focus helpers
    read them leniently.
    """

    id: Optional[str] = None
    kind: Optional[str] = None  # "click_target", "type_into_field", "manual", ...
    expected_event: Optional[Any] = None
    screenshot_overrides: Optional[Any] = None

    class Config:
        extra = "allow"


class UnitPoint(BaseModel):
    """Point in the unit square, independent of image resolution."""

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)


class FocusOverride(BaseModel):
    center_unit: UnitPoint
    zoom_scale: float = Field(gt=0)


class CursorOverride(BaseModel):
    point_unit: UnitPoint


class ScreenshotOverridesV1(BaseModel):
    """Author-supplied focus and cursor placement for one step."""

    focus: Optional[FocusOverride] = None
    cursor: Optional[CursorOverride] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump()
