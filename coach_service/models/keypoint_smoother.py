"""
REPCOACH Coach Service - Keypoint Smoother

Rolling window over raw per-frame joints. Raw joints jitter enough to push
angles back and forth across a rep threshold, so analyzers work on the
per-joint temporal mean instead.
"""

from collections import deque
from typing import Deque, Dict, List

import numpy as np

from core.config import settings
from .pose_geometry import Keypoint, Pose


class KeypointSmoother:
    """Bounded history of raw poses with per-joint averaging."""

    def __init__(self, max_history: int = None):
        self.max_history = max_history or settings.HISTORY_SIZE
        self.history: Deque[List[Keypoint]] = deque(maxlen=self.max_history)

    def __len__(self) -> int:
        return len(self.history)

    def push(self, keypoints: Pose):
        """Append one frame's joints, evicting the oldest frame when full."""
        self.history.append(list(keypoints))

    def smoothed(self) -> List[Keypoint]:
        """
        Average every joint over the frames in which it appears.

        Joints missing from a frame do not contribute to that joint's mean.
        Joint order follows first appearance in the buffer.
        """
        if not self.history:
            return []

        samples: Dict[str, List[Keypoint]] = {}
        for frame in self.history:
            for kp in frame:
                samples.setdefault(kp.name, []).append(kp)

        smoothed = []
        for name, points in samples.items():
            values = np.array([[kp.x, kp.y, kp.score] for kp in points], dtype=float)
            x, y, score = values.mean(axis=0)
            smoothed.append(Keypoint(name=name, x=float(x), y=float(y), score=float(score)))
        return smoothed

    def clear(self):
        self.history.clear()
