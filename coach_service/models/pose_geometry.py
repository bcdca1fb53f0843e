"""
REPCOACH Coach Service - Pose Geometry

Keypoint data classes, joint confidence filtering and planar joint angles.
Keypoints arrive in frame-pixel space from an external pose estimator
(MoveNet-style naming), one optional pose per frame.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Any
from enum import Enum

from core.config import settings


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class JointName(str, Enum):
    """Joint vocabulary delivered by the pose estimator."""
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


@dataclass(frozen=True)
class Keypoint:
    """A single named joint with 2D position and confidence."""
    name: str
    x: float
    y: float
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "x": self.x, "y": self.y, "score": self.score}


# One frame's joints. ``None`` in place of a pose means nobody was detected.
Pose = List[Keypoint]


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIDENCE FILTERING
# ═══════════════════════════════════════════════════════════════════════════════

def find_keypoint(
    keypoints: Iterable[Keypoint],
    name: str,
    min_score: float = None
) -> Optional[Keypoint]:
    """
    Look up a joint by name, only if it is confident enough to trust.

    Args:
        keypoints: Joints of one (possibly smoothed) frame
        name: Joint name, e.g. "left_elbow"
        min_score: Score the joint must exceed (defaults to KEYPOINT_MIN_SCORE)

    Returns:
        The matching Keypoint or None
    """
    if min_score is None:
        min_score = settings.KEYPOINT_MIN_SCORE
    name = getattr(name, "value", name)
    for kp in keypoints:
        if kp.name == name and kp.score > min_score:
            return kp
    return None


def find_keypoints(keypoints: Pose, names: Iterable[str]) -> Optional[Dict[str, Keypoint]]:
    """Return all requested joints keyed by name, or None if any is missing."""
    found = {}
    for name in names:
        kp = find_keypoint(keypoints, name)
        if kp is None:
            return None
        found[kp.name] = kp
    return found


def average_confidence(keypoints: Iterable[Keypoint], min_confidence: float = None) -> float:
    """Mean score of the joints scoring above ``min_confidence``; 0.0 if none do."""
    if min_confidence is None:
        min_confidence = settings.MIN_CONFIDENCE
    scores = [kp.score for kp in keypoints if kp.score > min_confidence]
    if not scores:
        return 0.0
    return float(np.mean(scores))


# ═══════════════════════════════════════════════════════════════════════════════
# ANGLES
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_angle(a: Keypoint, b: Keypoint, c: Keypoint) -> float:
    """
    Calculate the angle at point b formed by points a-b-c.

    Returns:
        Angle in degrees (0-180); reflex angles are folded back.
    """
    rad = np.arctan2(c.y - b.y, c.x - b.x) - np.arctan2(a.y - b.y, a.x - b.x)
    angle = abs(float(np.degrees(rad)))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def torso_tilt(shoulder: Keypoint, hip: Keypoint) -> float:
    """
    Direction of the shoulder->hip vector against the horizontal.

    0 or 180 degrees is a horizontal body (plank), 90 is upright.
    """
    return abs(float(np.degrees(np.arctan2(hip.y - shoulder.y, hip.x - shoulder.x))))
