"""
REPCOACH Coach Service - Rep State Machine

Per-exercise counting state, the readiness gate and the debounced
up/down transition logic shared by every exercise analyzer.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum

from core.config import settings

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Phase of a repetition."""
    UP = "up"
    DOWN = "down"


class Transition(str, Enum):
    """Stage change reported by a single state machine update."""
    DOWN = "down"
    UP = "up"


@dataclass
class ExerciseState:
    """
    Mutable counting state of one exercise.

    STATES:
        - not ready: waiting for the user to hold the start position
        - ready/up, ready/down: counting, with ``cooldown`` frames of
          suppression after each counted rep

    Owned by exactly one analyzer and only mutated by ``update_exercise_state``
    (plus posture gates that de-arm readiness).
    """
    stage: Stage = Stage.UP
    counter: int = 0
    cooldown: int = 0
    is_ready: bool = False
    ready_frames: int = 0
    cooldown_frames: int = field(default_factory=lambda: settings.COOLDOWN_FRAMES)
    frames_to_be_ready: int = field(default_factory=lambda: settings.FRAMES_TO_BE_READY)

    def disarm(self):
        """Drop readiness so counting waits for the start position again."""
        self.is_ready = False
        self.ready_frames = 0

    def reset(self):
        """Restore the initial state."""
        self.stage = Stage.UP
        self.counter = 0
        self.cooldown = 0
        self.is_ready = False
        self.ready_frames = 0


def update_readiness(state: ExerciseState, current_angle: float, up_threshold: float) -> bool:
    """
    Advance the readiness latch by one frame.

    The user has to hold an angle above ``up_threshold`` for
    ``frames_to_be_ready`` consecutive frames; any frame below resets the run.

    Returns:
        True if the state became ready on this frame
    """
    if current_angle > up_threshold:
        state.ready_frames += 1
    else:
        state.ready_frames = 0

    if state.ready_frames >= state.frames_to_be_ready:
        state.is_ready = True
        state.stage = Stage.UP
        return True
    return False


def update_exercise_state(
    state: ExerciseState,
    current_angle: float,
    down_threshold: float,
    up_threshold: float
) -> Optional[Transition]:
    """
    Update the state with the governing angle of the current frame.

    Args:
        state: Exercise state to mutate
        current_angle: Governing joint angle (degrees)
        down_threshold: Angle below which the rep reaches the bottom
        up_threshold: Angle above which the rep is completed

    Returns:
        Transition.DOWN, Transition.UP (a rep was counted) or None
    """
    if not state.is_ready:
        if update_readiness(state, current_angle, up_threshold):
            logger.debug(f"Ready after {state.ready_frames} frames above {up_threshold}")
        return None

    if state.cooldown > 0:
        state.cooldown -= 1
        return None

    if state.stage == Stage.UP and current_angle < down_threshold:
        state.stage = Stage.DOWN
        return Transition.DOWN

    if state.stage == Stage.DOWN and current_angle > up_threshold:
        state.stage = Stage.UP
        state.counter += 1
        state.cooldown = state.cooldown_frames
        return Transition.UP

    return None
