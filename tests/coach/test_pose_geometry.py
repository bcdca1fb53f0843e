"""
Tests for keypoint lookup, confidence and angle helpers, and the smoother.
"""

import math

import pytest

from coach_service.models import (
    Keypoint,
    KeypointSmoother,
    average_confidence,
    calculate_angle,
    find_keypoint,
    find_keypoints,
    torso_tilt,
)


def kp(name, x=0.0, y=0.0, score=0.9):
    return Keypoint(name=name, x=x, y=y, score=score)


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIDENCE FILTERING
# ═══════════════════════════════════════════════════════════════════════════════

def test_find_keypoint_requires_score_above_floor():
    pose = [kp("left_knee", score=0.3), kp("right_knee", score=0.31)]

    assert find_keypoint(pose, "left_knee") is None
    assert find_keypoint(pose, "right_knee").score == pytest.approx(0.31)
    assert find_keypoint(pose, "nose") is None


def test_find_keypoints_all_or_nothing():
    pose = [kp("left_hip"), kp("left_knee"), kp("left_ankle", score=0.1)]

    assert find_keypoints(pose, ["left_hip", "left_knee"]).keys() == {"left_hip", "left_knee"}
    assert find_keypoints(pose, ["left_hip", "left_ankle"]) is None


def test_average_confidence_ignores_weak_joints():
    pose = [kp("a", score=0.9), kp("b", score=0.7), kp("c", score=0.5), kp("d", score=0.2)]

    assert average_confidence(pose) == pytest.approx(0.8)
    assert average_confidence([kp("a", score=0.4)]) == 0.0
    assert average_confidence([]) == 0.0


# ═══════════════════════════════════════════════════════════════════════════════
# ANGLES
# ═══════════════════════════════════════════════════════════════════════════════

def test_right_angle():
    assert calculate_angle(kp("a", 0, -10), kp("b", 0, 0), kp("c", 10, 0)) == pytest.approx(90.0)


def test_straight_line_is_180():
    assert calculate_angle(kp("a", -10, 0), kp("b", 0, 0), kp("c", 10, 0)) == pytest.approx(180.0)


def test_reflex_angle_is_folded():
    a = kp("a", math.cos(math.radians(170)), math.sin(math.radians(170)))
    c = kp("c", math.cos(math.radians(-170)), math.sin(math.radians(-170)))

    assert calculate_angle(a, kp("b"), c) == pytest.approx(20.0)


def test_torso_tilt():
    shoulder = kp("left_shoulder", 100, 100)

    assert torso_tilt(shoulder, kp("left_hip", 300, 100)) == pytest.approx(0.0)
    assert torso_tilt(shoulder, kp("left_hip", -100, 100)) == pytest.approx(180.0)
    assert torso_tilt(shoulder, kp("left_hip", 100, 300)) == pytest.approx(90.0)


# ═══════════════════════════════════════════════════════════════════════════════
# SMOOTHER
# ═══════════════════════════════════════════════════════════════════════════════

def test_smoothed_empty_history():
    assert KeypointSmoother().smoothed() == []


def test_smoothed_averages_each_joint():
    smoother = KeypointSmoother(max_history=8)
    smoother.push([kp("nose", 0, 0, 0.6), kp("left_hip", 10, 10, 0.8)])
    smoother.push([kp("nose", 10, 20, 1.0), kp("left_hip", 30, 10, 0.6)])

    smoothed = {k.name: k for k in smoother.smoothed()}

    assert smoothed["nose"].x == pytest.approx(5.0)
    assert smoothed["nose"].y == pytest.approx(10.0)
    assert smoothed["nose"].score == pytest.approx(0.8)
    assert smoothed["left_hip"].x == pytest.approx(20.0)
    assert smoothed["left_hip"].score == pytest.approx(0.7)


def test_missing_joint_does_not_count_as_zero():
    smoother = KeypointSmoother()
    smoother.push([kp("nose", 10, 10)])
    smoother.push([kp("left_hip", 50, 50)])
    smoother.push([kp("nose", 20, 30)])

    smoothed = {k.name: k for k in smoother.smoothed()}

    assert smoothed["nose"].x == pytest.approx(15.0)
    assert smoothed["nose"].y == pytest.approx(20.0)
    assert smoothed["left_hip"].x == pytest.approx(50.0)
    assert [k.name for k in smoother.smoothed()] == ["nose", "left_hip"]


def test_history_evicts_oldest_frame():
    smoother = KeypointSmoother(max_history=8)
    for i in range(10):
        smoother.push([kp("nose", float(i), 0)])

    assert len(smoother) == 8
    # frames 2..9 remain
    assert smoother.smoothed()[0].x == pytest.approx(5.5)

    smoother.clear()
    assert len(smoother) == 0
