"""Shared fixtures for tests."""

import json
import os
from pathlib import Path

import pytest

from guide_focus.config import reset_focus_tuning
from guide_focus.schema import STEP_IMAGE_COORDINATE_SPACE, GuideStep, StepImage
from guide_focus.service import reset_guide_focus_service

FIXTURES_DIR = Path(__file__).parent / "fixtures"

PX = STEP_IMAGE_COORDINATE_SPACE


@pytest.fixture(autouse=True)
def clean_singletons(monkeypatch):
    """Each test starts from default tuning and a fresh service."""
    for name in list(os.environ):
        if name.startswith("GUIDE_FOCUS_") or name == "GUIDE_CURSOR_OVERLAY_MODE":
            monkeypatch.delenv(name, raising=False)
    reset_focus_tuning()
    reset_guide_focus_service()
    yield
    reset_focus_tuning()
    reset_guide_focus_service()


@pytest.fixture
def focus_transform_cases():
    """Hand-checked compute_focus_transform_v1 cases."""
    with open(FIXTURES_DIR / "focus_transform_v1.json") as f:
        return json.load(f)["cases"]


def make_image(step_id, width=1000, height=800, radar=None, **extra):
    """Build a StepImage with an optional pixel-space radar (x, y[, confidence])."""
    payload = {"step_id": step_id, "width": width, "height": height, **extra}
    if radar is not None:
        x, y, *rest = radar
        payload["radar"] = {"x": x, "y": y, "coordinate_space": PX}
        if rest:
            payload["radar"]["confidence"] = rest[0]
    return StepImage.model_validate(payload)


@pytest.fixture
def image_factory():
    return make_image


@pytest.fixture
def three_step_guide():
    """
    Click, typing, click. Only the first and last images carry a radar, and
    the first image knows its size only through the full variant.
    """
    steps = [
        GuideStep(id="step_1", kind="click_target"),
        GuideStep(id="step_2", kind="type_into_field"),
        GuideStep(id="step_3", kind="click_target"),
    ]
    images = [
        StepImage.model_validate(
            {
                "step_id": "step_1",
                "radar": {"x": 200, "y": 100, "coordinate_space": PX, "confidence": 0.9},
                "variants": {
                    "full": {"download_url": "https://media.example/step_1_full.jpg", "width": 400, "height": 200}
                },
            }
        ),
        make_image("step_2", width=400, height=200),
        make_image("step_3", width=400, height=200, radar=(300, 150, 0.9)),
    ]
    return steps, images


@pytest.fixture
def guide_version_payload():
    """Raw guide spec and version payload as returned by the guide backend."""
    spec = {
        "steps": [
            {"id": "step_1", "kind": "click_target", "title": "Open settings"},
            {"id": "step_2", "kind": "type_into_field", "expected_event": {"type": "input"}},
            {"id": "step_3", "kind": "select_menu"},
        ]
    }
    version = {
        "version": 3,
        "guide_media": {
            "step_images": [
                {
                    "step_id": "step_1",
                    "width": 1920,
                    "height": 1080,
                    "download_url": "https://media.example/step_1.jpg",
                    "radar": {"x": 640, "y": 360, "coordinate_space": PX, "confidence": 0.92},
                    "variants": {
                        "preview": {"download_url": "https://media.example/step_1_preview.jpg", "width": 768, "height": 432},
                        "full": {"download_url": "https://media.example/step_1_full.jpg", "width": 1920, "height": 1080},
                    },
                },
                {
                    "step_id": "step_2",
                    "width": 1920,
                    "height": 1080,
                    "download_url": "https://media.example/step_2.jpg",
                },
                {
                    "width": 1920,
                    "height": 1080,
                },
            ]
        },
    }
    return spec, version
