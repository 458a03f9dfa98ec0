"""
Cursor overlay helpers: overlay mode selection and recorded cursor tracks.

A cursor track is normalized once into percentages of the image so the
viewer can animate it at any rendered size.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from guide_focus.schema import CursorTrack, is_finite_number, is_pixel_space, to_positive_finite


class CursorOverlayMode(str, Enum):
    RADAR_DOT = "radar_dot"
    CAPTURED_CURSOR = "captured_cursor"
    NONE = "none"


DEFAULT_CURSOR_OVERLAY_MODE = CursorOverlayMode.RADAR_DOT

CLICK_PULSE_KINDS = ("mouse_down", "mouse_up")


@dataclass
class RenderableCursorPoint:
    t_ms: float
    left_percent: float
    top_percent: float
    kind: str  # "move", "mouse_down", "mouse_up"


@dataclass
class RenderableCursorTrack:
    duration_ms: float
    sample_rate_hz: Optional[float]
    points: List[RenderableCursorPoint]


def parse_cursor_overlay_mode(value: Any) -> Optional[CursorOverlayMode]:
    """Parse an overlay mode name; None for anything unknown."""
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if not normalized:
        return None
    try:
        return CursorOverlayMode(normalized)
    except ValueError:
        return None


def resolve_cursor_overlay_mode(
    value: Any, fallback: CursorOverlayMode = DEFAULT_CURSOR_OVERLAY_MODE
) -> CursorOverlayMode:
    return parse_cursor_overlay_mode(value) or fallback


def _normalize_kind(value: Any) -> str:
    normalized = value.strip().lower() if isinstance(value, str) else ""
    if normalized in CLICK_PULSE_KINDS:
        return normalized
    return "move"


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def resolve_renderable_cursor_track(
    cursor_track: Optional[CursorTrack],
    width: Optional[float],
    height: Optional[float],
) -> Optional[RenderableCursorTrack]:
    """
    Convert a recorded cursor track into time-ordered percentage points.

    Points with unusable times or coordinates outside the image are dropped,
    as are exact consecutive duplicates. Returns None when nothing remains.
    """
    if cursor_track is None or not is_pixel_space(cursor_track):
        return None

    width = to_positive_finite(width)
    height = to_positive_finite(height)
    if width is None or height is None:
        return None

    points = []
    for point in cursor_track.points:
        if not is_finite_number(point.t_ms) or point.t_ms < 0:
            continue
        if not is_finite_number(point.x) or not is_finite_number(point.y):
            continue
        if point.x < 0 or point.x > width or point.y < 0 or point.y > height:
            continue
        points.append(
            RenderableCursorPoint(
                t_ms=point.t_ms,
                left_percent=_clamp_percent(point.x / width * 100),
                top_percent=_clamp_percent(point.y / height * 100),
                kind=_normalize_kind(point.kind),
            )
        )

    if not points:
        return None

    points.sort(key=lambda p: p.t_ms)

    deduped: List[RenderableCursorPoint] = []
    for point in points:
        if deduped and deduped[-1] == point:
            continue
        deduped.append(point)

    last_point_time = deduped[-1].t_ms
    duration_ms = max(1, to_positive_finite(cursor_track.duration_ms) or last_point_time)

    return RenderableCursorTrack(
        duration_ms=max(duration_ms, last_point_time),
        sample_rate_hz=to_positive_finite(cursor_track.sample_rate_hz),
        points=deduped,
    )


def sample_renderable_cursor_track_point(
    track: RenderableCursorTrack, elapsed_ms: float
) -> Optional[RenderableCursorPoint]:
    """Interpolated cursor position at elapsed_ms into the track."""
    points = track.points
    if not points:
        return None
    if len(points) == 1:
        return points[0]

    elapsed = elapsed_ms if is_finite_number(elapsed_ms) else 0
    if elapsed <= points[0].t_ms:
        return points[0]
    if elapsed >= points[-1].t_ms:
        return points[-1]

    for previous, nxt in zip(points, points[1:]):
        if elapsed > nxt.t_ms:
            continue
        span = nxt.t_ms - previous.t_ms
        if span <= 0:
            return nxt
        ratio = (elapsed - previous.t_ms) / span
        return RenderableCursorPoint(
            t_ms=elapsed,
            left_percent=previous.left_percent + (nxt.left_percent - previous.left_percent) * ratio,
            top_percent=previous.top_percent + (nxt.top_percent - previous.top_percent) * ratio,
            kind=nxt.kind if ratio >= 0.9 else previous.kind,
        )

    return points[-1]


def resolve_cursor_track_pulse_kind(
    track: RenderableCursorTrack, elapsed_ms: float, pulse_window_ms: float = 120
) -> Optional[str]:
    """Most recent mouse_down/mouse_up within the pulse window, if any."""
    if not is_finite_number(elapsed_ms):
        return None
    lower_bound = elapsed_ms - max(0, pulse_window_ms)
    for point in reversed(track.points):
        if point.t_ms > elapsed_ms:
            continue
        if point.t_ms < lower_bound:
            break
        if point.kind in CLICK_PULSE_KINDS:
            return point.kind
    return None
