"""
Focus tuning: thresholds and default zooms used by step focus derivation.

The defaults are empirically chosen and must stay as they are for
behavioural compatibility with guides rendered by the backend. They can be
overridden per process through GUIDE_FOCUS_* environment variables.
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FocusTuning:
    """Tunable constants for focus derivation and pointer-hint strength."""

    # Pointer hints on click-like steps
    strong_hint_confidence: float = 0.7
    strong_hint_zoom: float = 1.22

    # Hints on non-click steps
    non_click_hint_zoom: float = 1.05

    # Synthesized hints
    default_radar_confidence: float = 0.86
    click_zoom: float = 1.85
    clamped_zoom: float = 1.4
    center_zoom: float = 1.25
    center_confidence: float = 0.35

    # Borrowed (clamped) click confidence = candidate * decay, within [floor, 1]
    clamp_confidence_decay: float = 0.85
    clamp_confidence_floor: float = 0.1

    @classmethod
    def from_env(cls, prefix: str = "GUIDE_FOCUS_") -> "FocusTuning":
        """
        Build tuning from environment variables.

        Each field maps to PREFIX + FIELD_NAME upper-cased, e.g.
        GUIDE_FOCUS_CLICK_ZOOM=2.0. Unparseable values keep the default.
        """
        overrides = {}
        for f in fields(cls):
            env_name = f"{prefix}{f.name.upper()}"
            raw = os.getenv(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                overrides[f.name] = float(raw)
            except ValueError:
                logger.warning(f"Ignoring {env_name}={raw!r}: not a number")
        return cls(**overrides)


# Singleton
_focus_tuning: Optional[FocusTuning] = None


def get_focus_tuning() -> FocusTuning:
    """
    Get process-wide focus tuning (singleton).

    Reads GUIDE_FOCUS_* environment variables on first use.
    """
    global _focus_tuning

    if _focus_tuning is None:
        _focus_tuning = FocusTuning.from_env()

    return _focus_tuning


def reset_focus_tuning():
    """Reset singleton (for testing)."""
    global _focus_tuning
    _focus_tuning = None
