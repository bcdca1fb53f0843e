"""
Shared fixtures for the coach service tests.

Poses are built geometrically so the governing joint angle is exact.
"""

import math
from typing import List, Optional

import pytest

from coach_service.models import Keypoint


def _kp(name: str, x: float, y: float, score: float) -> Keypoint:
    return Keypoint(name=name, x=x, y=y, score=score)


def _limb_end(vertex_x: float, vertex_y: float, angle_deg: float, length: float):
    """End point making ``angle_deg`` at the vertex with a segment pointing straight up."""
    rad = math.radians(angle_deg)
    return vertex_x + length * math.sin(rad), vertex_y - length * math.cos(rad)


def build_pushup_pose(
    elbow_angle: float,
    score: float = 0.9,
    upright: bool = False,
    drop: Optional[List[str]] = None
) -> List[Keypoint]:
    """Plank (or upright torso) with both elbows at ``elbow_angle``."""
    keypoints = []
    for side, dy in (("left", 0.0), ("right", 5.0)):
        sx, sy = 200.0, 200.0 + dy
        ex, ey = sx, sy + 80.0
        wx, wy = _limb_end(ex, ey, elbow_angle, 80.0)
        hx, hy = (sx, sy + 200.0) if upright else (sx + 200.0, sy)
        keypoints += [
            _kp(f"{side}_shoulder", sx, sy, score),
            _kp(f"{side}_elbow", ex, ey, score),
            _kp(f"{side}_wrist", wx, wy, score),
            _kp(f"{side}_hip", hx, hy, score),
        ]
    drop = drop or []
    return [kp for kp in keypoints if kp.name not in drop]


def build_squat_pose(knee_angle: float, score: float = 0.9, drop: Optional[List[str]] = None) -> List[Keypoint]:
    """Standing figure with both knees at ``knee_angle``."""
    keypoints = [_kp("nose", 350.0, 80.0, score)]
    for side, dx in (("left", 0.0), ("right", 100.0)):
        hx, hy = 300.0 + dx, 200.0
        kx, ky = hx, hy + 100.0
        ax, ay = _limb_end(kx, ky, knee_angle, 100.0)
        keypoints += [
            _kp(f"{side}_hip", hx, hy, score),
            _kp(f"{side}_knee", kx, ky, score),
            _kp(f"{side}_ankle", ax, ay, score),
        ]
    drop = drop or []
    return [kp for kp in keypoints if kp.name not in drop]


class RecordingSpeechSink:
    """Speech sink that remembers every call."""

    def __init__(self):
        self.spoken: List[str] = []
        self.cancel_flags: List[bool] = []
        self.cancelled = 0

    def speak(self, text: str, cancel_previous: bool = True) -> None:
        self.spoken.append(text)
        self.cancel_flags.append(cancel_previous)

    def cancel(self) -> None:
        self.cancelled += 1


@pytest.fixture
def pushup_pose():
    return build_pushup_pose


@pytest.fixture
def squat_pose():
    return build_squat_pose


@pytest.fixture
def speech_sink():
    return RecordingSpeechSink()
